import logging

import pytest

from receiver import cli
from receiver.config import Settings, resolve_log_level
from receiver.errors import ConfigurationError


@pytest.mark.parametrize(
    "debug,verbose,env,expected",
    [
        (True, False, None, "DEBUG"),
        (True, True, "error", "DEBUG"),
        (False, True, None, "INFO"),
        (False, True, "debug", "DEBUG"),
        (False, False, "debug", "DEBUG"),
        (False, False, "info", "INFO"),
        (False, False, "ERROR", "ERROR"),
        (False, False, "warn", "WARNING"),
        (False, False, "nonsense", "WARNING"),
        (False, False, None, "WARNING"),
    ],
)
def test_resolve_log_level(debug, verbose, env, expected):
    assert resolve_log_level(debug, verbose, env) == expected


def test_settings_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DATA_RECEIVER_ADDR", "127.0.0.1")
    monkeypatch.setenv("DATA_RECEIVER_PORT", "9999")
    monkeypatch.setenv("DATABASE_FILES", str(tmp_path))
    monkeypatch.setenv("LOG_LEVEL", "info")
    monkeypatch.setenv("STORE_CACHE_SIZE", "0")
    monkeypatch.setenv("SQLITE_WAL", "false")
    s = Settings.from_env()
    assert (s.host, s.port, s.database_files) == ("127.0.0.1", 9999, str(tmp_path))
    assert s.log_level == "INFO"
    assert s.log_level_number == logging.INFO
    assert s.store_cache_size == 0
    assert s.wal_mode is False


def test_settings_are_frozen():
    s = Settings()
    with pytest.raises(Exception):
        s.port = 1


def test_validate_accepts_writable_dir(tmp_path):
    Settings(database_files=str(tmp_path)).validate()


def test_validate_rejects_missing_dir(tmp_path):
    with pytest.raises(ConfigurationError):
        Settings(database_files=str(tmp_path / "missing")).validate()


def test_validate_rejects_file(tmp_path):
    f = tmp_path / "file"
    f.write_text("x")
    with pytest.raises(ConfigurationError):
        Settings(database_files=str(f)).validate()


def test_cli_flags_override_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DATA_RECEIVER_PORT", "9999")
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    s = cli.settings_from_args(["-a", "127.0.0.1", "-p", "7000", "--database-files", str(tmp_path), "-v"])
    assert (s.host, s.port, s.database_files, s.log_level) == ("127.0.0.1", 7000, str(tmp_path), "INFO")


def test_cli_defaults(monkeypatch):
    for key in ("DATA_RECEIVER_ADDR", "DATA_RECEIVER_PORT", "DATABASE_FILES", "LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    s = cli.settings_from_args([])
    assert (s.host, s.port, s.database_files, s.log_level) == ("0.0.0.0", 8888, "./", "WARNING")


def test_cli_debug_flag(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "error")
    assert cli.settings_from_args(["--debug"]).log_level == "DEBUG"


def test_main_fails_fast_on_missing_root(monkeypatch, tmp_path):
    calls = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda *a, **kw: calls.append((a, kw)))
    code = cli.main(["--database-files", str(tmp_path / "missing")])
    assert code == cli.EXIT_CONFIG_ERROR
    assert calls == []


def test_main_starts_server(monkeypatch, tmp_path):
    calls = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kw: calls.append((app, kw)))
    code = cli.main(["--database-files", str(tmp_path), "-p", "7001", "--debug"])
    assert code == 0
    app, kwargs = calls[0]
    assert kwargs["port"] == 7001
    assert kwargs["log_level"] == "debug"
    assert app.state.settings.database_files == str(tmp_path)


def test_log_level_env_applies_without_cli(monkeypatch, tmp_path):
    from receiver import monitoring
    from receiver.app import create_app

    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("DATABASE_FILES", str(tmp_path))
    create_app(Settings.from_env())
    try:
        assert monitoring.logger.getEffectiveLevel() == logging.DEBUG
    finally:
        monitoring.configure_logging(logging.WARNING)


def test_create_app_applies_settings_log_level(tmp_path):
    from receiver import monitoring
    from receiver.app import create_app

    create_app(Settings(database_files=str(tmp_path), log_level="INFO"))
    try:
        assert monitoring.logger.getEffectiveLevel() == logging.INFO
    finally:
        monitoring.configure_logging(logging.WARNING)
