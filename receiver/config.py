# receiver/config.py
"""
Process-wide settings, built once at startup and never mutated afterwards.

Env vars:
- DATA_RECEIVER_ADDR (default: 0.0.0.0)
- DATA_RECEIVER_PORT (default: 8888)
- DATABASE_FILES: directory holding the <database>.db files (default: ./)
- LOG_LEVEL: fallback verbosity when neither --debug nor --verbose is given
- SQLITE_BUSY_TIMEOUT_MS (default: 5000)
- SQLITE_WAL (default: true)
- STORE_CACHE_SIZE (default: 32, 0 opens a fresh handle per request)
- STORE_IDLE_SECONDS (default: 300)
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from receiver.errors import ConfigurationError

DEFAULT_ADDR = "0.0.0.0"
DEFAULT_PORT = 8888
DEFAULT_DATABASE_FILES = "./"


def _env_bool(key: str, default: str) -> bool:
    return os.getenv(key, default).lower() in ("1", "true", "yes")


def resolve_log_level(debug: bool = False, verbose: bool = False, env_value: Optional[str] = None) -> str:
    """
    Pick the log level name.

    --debug beats --verbose; without either flag the env value is used
    when it names a real level, otherwise WARNING.
    """
    env_level = (env_value or "").strip().upper()
    if debug or env_level == "DEBUG":
        return "DEBUG"
    if verbose or env_level == "INFO":
        return "INFO"
    if env_level in ("WARNING", "WARN", "ERROR", "CRITICAL"):
        return "WARNING" if env_level == "WARN" else env_level
    return "WARNING"


@dataclass(frozen=True)
class Settings:
    """
    Attributes:
        host: Address to listen on
        port: Port to listen on
        database_files: Root directory for store files
        log_level: Resolved log level name
        busy_timeout_ms: How long a writer waits for the SQLite lock
        wal_mode: Put store files in WAL journal mode
        store_cache_size: Max cached store engines (0 disables the cache)
        store_idle_seconds: Idle time after which a cached engine is disposed
    """

    host: str = DEFAULT_ADDR
    port: int = DEFAULT_PORT
    database_files: str = DEFAULT_DATABASE_FILES
    log_level: str = "WARNING"
    busy_timeout_ms: int = 5000
    wal_mode: bool = True
    store_cache_size: int = 32
    store_idle_seconds: float = 300.0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.getenv("DATA_RECEIVER_ADDR", DEFAULT_ADDR),
            port=int(os.getenv("DATA_RECEIVER_PORT", str(DEFAULT_PORT))),
            database_files=os.getenv("DATABASE_FILES", DEFAULT_DATABASE_FILES),
            log_level=resolve_log_level(env_value=os.getenv("LOG_LEVEL")),
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            wal_mode=_env_bool("SQLITE_WAL", "true"),
            store_cache_size=int(os.getenv("STORE_CACHE_SIZE", "32")),
            store_idle_seconds=float(os.getenv("STORE_IDLE_SECONDS", "300")),
        )

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level)

    def validate(self) -> None:
        """Fail fast if the store root cannot hold database files."""
        root = self.database_files
        if not os.path.exists(root):
            raise ConfigurationError(f"database files directory does not exist: {root}")
        if not os.path.isdir(root):
            raise ConfigurationError(f"database files path is not a directory: {root}")
        if not os.access(root, os.R_OK | os.W_OK | os.X_OK):
            raise ConfigurationError(f"database files directory is not readable and writable: {root}")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"port out of range: {self.port}")
        if self.busy_timeout_ms < 0:
            raise ConfigurationError("SQLITE_BUSY_TIMEOUT_MS must not be negative")
        if self.store_cache_size < 0:
            raise ConfigurationError("STORE_CACHE_SIZE must not be negative")
