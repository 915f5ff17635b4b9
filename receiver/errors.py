# receiver/errors.py
"""
Error taxonomy for the ingestion path.

ClientInputError  -> HTTP 400, nothing is written
StorageError      -> HTTP 500, the request is aborted
ConfigurationError -> raised at bootstrap, the process exits
"""

from typing import Any, Dict, Optional

E_BAD_INPUT = "E_BAD_INPUT"
E_BAD_NAME = "E_BAD_NAME"
E_BAD_ENCODING = "E_BAD_ENCODING"
E_STORAGE = "E_STORAGE"
E_MALFORMED_JSON = "E_MALFORMED_JSON"
E_INTERNAL = "E_INTERNAL"


class ReceiverError(Exception):
    """Base class for errors that map onto an HTTP error envelope."""

    status_code = 500
    error_code = E_INTERNAL

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> Dict[str, Any]:
        return {
            "status": "error",
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ClientInputError(ReceiverError):
    status_code = 400
    error_code = E_BAD_INPUT


class InvalidNameError(ClientInputError):
    """Database or table name failed identifier validation."""

    error_code = E_BAD_NAME


class PayloadDecodeError(ClientInputError):
    """Request body is not valid UTF-8 text."""

    error_code = E_BAD_ENCODING


class StorageError(ReceiverError):
    status_code = 500
    error_code = E_STORAGE


class MalformedDocumentError(StorageError):
    """SQLite's json() rejected the document at insert time."""

    error_code = E_MALFORMED_JSON


class ConfigurationError(Exception):
    """Process configuration is unusable (e.g. store root missing)."""
