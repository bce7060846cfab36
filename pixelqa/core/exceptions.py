"""Custom exceptions for the application."""


class ApplicationError(Exception):
    """Base application error."""
    pass


class DecodeError(ApplicationError):
    """Uploaded or intermediate image data could not be decoded."""
    pass


class TransformError(ApplicationError):
    """Raster transform rejected (bad target size, bad scale, encode failure)."""
    pass


class ConfigError(ApplicationError):
    """Configuration-related errors."""
    pass


class ValidationError(ApplicationError):
    """Data validation errors."""
    pass


class OracleError(ApplicationError):
    """Analysis oracle failed: network, non-2xx, non-JSON or exhausted candidates."""

    def __init__(self, message: str, code: str = "", status: int = None,
                 endpoint: str = None, model: str = None, error_type: str = ""):
        super().__init__(message)
        self.message = message
        self.code = code
        self.error_type = error_type
        self.status = status
        self.endpoint = endpoint
        self.model = model

    def to_envelope(self) -> dict:
        """Return the ``{"error": {...}}`` envelope used on the wire."""
        error = {"message": self.message}
        if self.code:
            error["code"] = self.code
        if self.error_type:
            error["type"] = self.error_type
        if self.status is not None:
            error["status"] = self.status
        if self.endpoint:
            error["endpoint"] = self.endpoint
        if self.model:
            error["model"] = self.model
        return {"error": error}


class OracleTimeoutError(OracleError):
    """Oracle call exceeded its bounded wait."""
    pass


class CandidateUnavailable(OracleError):
    """A single (endpoint, model) candidate failed in a way that allows fallback."""
    pass
