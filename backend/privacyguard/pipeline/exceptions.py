class PipelineError(Exception):
    """Base exception for all assessment pipeline errors."""


class GatewayError(PipelineError):
    """Raised when the classification gateway call fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(GatewayError):
    """Raised when the classification gateway signals a rate limit (HTTP 429 or equivalent)."""

    def __init__(self, message: str, *, status_code: int | None = 429) -> None:
        super().__init__(message, status_code=status_code)


class ClassificationError(PipelineError):
    """Raised when a policy cannot be classified: unparseable output or retries exhausted."""


class StoreError(PipelineError):
    """Raised when the persistent store cannot complete an operation."""
