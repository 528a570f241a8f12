"""Domain-specific error types for the LLM module."""


class LlmApiError(Exception):
    """LLM API call failure.

    Attributes:
        status_code: HTTP status code from the API response, 0 if unknown.
    """

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


class LlmProcessingError(Exception):
    """The model answered, but the answer was unusable."""
