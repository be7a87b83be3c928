"""Pipeline error taxonomy and its HTTP mapping."""

from .models.schemas import ErrorCode

_STATUS_CODES = {
    ErrorCode.INVALID_IMAGE: 400,
    ErrorCode.STORAGE_ERROR: 500,
    ErrorCode.GENERATION_FAILED: 500,
    ErrorCode.TIMEOUT: 504,
    ErrorCode.UNKNOWN: 500,
}


class VisualizationError(Exception):
    """A failure the caller sees as `{error, code, details}`."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: str | None = None,
        *,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code or _STATUS_CODES[code]

    def to_body(self) -> dict:
        return {"error": self.message, "code": self.code.value, "details": self.details}

    @classmethod
    def invalid_image(cls, details: str | None = None) -> "VisualizationError":
        return cls(ErrorCode.INVALID_IMAGE, "Invalid image", details)

    @classmethod
    def not_configured(cls) -> "VisualizationError":
        return cls(
            ErrorCode.GENERATION_FAILED,
            "Image generation is not configured",
            "OPENROUTER_API_KEY is not set",
            status_code=503,
        )
