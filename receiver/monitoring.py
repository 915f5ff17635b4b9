# receiver/monitoring.py
"""
Centralized monitoring: Prometheus metrics, structured JSON logging, optional Sentry.

Env vars:
- PROMETHEUS_ENABLED (default: true)
- SENTRY_DSN (optional)
- LOG_AS_JSON (default: true)
- ENVIRONMENT (default: development)
"""

import os
import logging
import time
from typing import Optional, Tuple

from prometheus_client import (
    Counter, Histogram, Gauge,
    generate_latest, CONTENT_TYPE_LATEST, REGISTRY,
)
from pythonjsonlogger import jsonlogger

# Optional import: Sentry is only wired up when SENTRY_DSN is set
try:
    import sentry_sdk
    _HAS_SENTRY = True
except ImportError:
    _HAS_SENTRY = False

# --- ENV flags
PROMETHEUS_ENABLED = os.getenv("PROMETHEUS_ENABLED", "true").lower() in ("1", "true", "yes")
SENTRY_DSN = os.getenv("SENTRY_DSN", None)
LOG_AS_JSON = os.getenv("LOG_AS_JSON", "true").lower() in ("1", "true", "yes")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

LOGGER_NAME = "receiver"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


# --- Logger setup
def _make_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    if LOG_AS_JSON:
        handler.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logger(name: str = LOGGER_NAME, level: Optional[int] = None) -> logging.Logger:
    level = logging.WARNING if level is None else level
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        logger.addHandler(_make_handler())
    return logger


logger = setup_logger()


def configure_logging(level: int) -> None:
    """Apply the resolved verbosity to our logger and uvicorn's."""
    logger.setLevel(level)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.setLevel(level)
        uv_logger.handlers = [_make_handler()]
        uv_logger.propagate = False


def init_sentry() -> bool:
    if SENTRY_DSN and _HAS_SENTRY:
        sentry_sdk.init(dsn=SENTRY_DSN, environment=ENVIRONMENT)
        logger.info("Sentry initialized")
        return True
    return False


# --- Prometheus metrics
REQUEST_COUNT = Counter(
    "receiver_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "receiver_request_latency_seconds",
    "Request latency in seconds",
    ["endpoint"],
)

RECORDS_WRITTEN = Counter(
    "receiver_records_written_total",
    "Documents persisted",
)

INGEST_ERRORS = Counter(
    "receiver_ingest_errors_total",
    "Rejected or failed ingest requests",
    ["error_code"],
)

TABLES_ENSURED = Counter(
    "receiver_tables_ensured_total",
    "CREATE TABLE IF NOT EXISTS statements issued",
)

OPEN_STORES = Gauge(
    "receiver_open_stores",
    "Store engines currently held in the cache",
)


# --- Helper wrappers (never crash the app)
def observe_request(start_ts: float, endpoint: str, method: str, status: str):
    try:
        REQUEST_LATENCY.labels(endpoint=endpoint).observe(time.time() - start_ts)
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=status).inc()
    except Exception:
        pass


def inc_records_written():
    try:
        RECORDS_WRITTEN.inc()
    except Exception:
        pass


def inc_ingest_error(code: str):
    try:
        INGEST_ERRORS.labels(error_code=code).inc()
    except Exception:
        pass


def inc_tables_ensured():
    try:
        TABLES_ENSURED.inc()
    except Exception:
        pass


def set_open_stores(n: int):
    try:
        OPEN_STORES.set(n)
    except Exception:
        pass


def prometheus_metrics_response() -> Tuple[bytes, str]:
    """Return (body_bytes, content_type) for Prometheus scrape."""
    try:
        return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
    except Exception:
        return b"", CONTENT_TYPE_LATEST
