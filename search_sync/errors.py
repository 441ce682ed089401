"""
Error types and message extraction shared by the engine and its backends.
"""

from typing import Any, Optional


class ConfigurationError(Exception):
    """Fatal configuration problem detected at startup"""


class IndexClientError(Exception):
    """
    Failure reported by a search backend.

    Backends wrap their transport exceptions into this type so the engine can
    log a readable message without knowing the backend library.
    """

    def __init__(
        self,
        message: str,
        backend_message: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.backend_message = backend_message
        self.status_code = status_code


def get_error_message(error: Any) -> str:
    """
    Derive a log-friendly message from a failure.

    Prefers the nested backend message, then the generic ``message``
    attribute, then the string form of the error.
    """
    backend_message = getattr(error, "backend_message", None)
    if backend_message:
        return str(backend_message)

    response = getattr(error, "response", None)
    data = getattr(response, "data", None)
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])

    message = getattr(error, "message", None)
    if message:
        return str(message)

    text = str(error)
    return text if text else type(error).__name__
