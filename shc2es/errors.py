"""Exception types shared across the ingestion pipeline."""

from typing import Optional


class Shc2EsError(Exception):
    """Base class for all shc2es errors."""


class ParseError(Shc2EsError):
    """A log line could not be decoded into an event envelope."""

    def __init__(self, message: str, line_preview: str = ""):
        super().__init__(message)
        self.line_preview = line_preview


class StoreConnectionError(Shc2EsError):
    """The document store (or dashboard store) could not be reached."""


class StoreRequestError(Shc2EsError):
    """The store answered with an HTTP error status."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DashboardImportError(Shc2EsError):
    """Saved-object import was rejected by the dashboard store."""


class ConfigValidationError(Shc2EsError):
    """An environment variable is missing or malformed."""

    def __init__(self, message: str, variable: str):
        super().__init__(message)
        self.variable = variable
