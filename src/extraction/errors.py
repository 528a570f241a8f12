"""Exception hierarchy for adaptive content extraction.

Every failure path of the extraction pipeline ends in one of these
types, so callers can tell a bad HTTP response from a page that could
not be understood.
"""

from src.fetch.models import FetchErrorClass


class ExtractionError(Exception):
    """Base exception for content extraction.

    All extraction exceptions inherit from this class, allowing callers
    to catch every module-specific error at once.
    """

    def __init__(self, message: str, *, url: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            url: URL associated with the error.
        """
        super().__init__(message)
        self.message = message
        self.url = url

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert the error to a dictionary for structured logging."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "url": self.url,
        }


class InvalidResponseError(ExtractionError):
    """Raised when a fetch did not produce a 2xx response.

    Transport failures (timeouts, refused connections) carry a status
    code of ``None``.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: int | None = None,
        error_class: FetchErrorClass | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            url: URL that was fetched.
            status_code: HTTP status, if a response was received.
            error_class: Fetch error classification.
        """
        super().__init__(message, url=url)
        self.status_code = status_code
        self.error_class = error_class

    def to_dict(self) -> dict[str, str | int | None]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        data["error_class"] = self.error_class.value if self.error_class else None
        return data


class InvalidEncodingError(ExtractionError):
    """Raised when a response body cannot be decoded as UTF-8 text."""


class InvalidStructureError(ExtractionError):
    """Raised when a parser finds no plausible anchor for its content type.

    This is about document structure (no container, no heading), not
    about empty field values, which are handled by completeness checks.
    """

    def __init__(
        self,
        message: str,
        *,
        record_type: str,
        url: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            record_type: Name of the record type being parsed.
            url: URL of the document, if known.
        """
        super().__init__(message, url=url)
        self.record_type = record_type

    def to_dict(self) -> dict[str, str | int | None]:
        data = super().to_dict()
        data["record_type"] = self.record_type
        return data


class UnsupportedFallbackTypeError(ExtractionError):
    """Raised when a record type cannot be rebuilt from fallback output."""

    def __init__(
        self,
        message: str,
        *,
        record_type: str,
        url: str | None = None,
    ) -> None:
        super().__init__(message, url=url)
        self.record_type = record_type

    def to_dict(self) -> dict[str, str | int | None]:
        data = super().to_dict()
        data["record_type"] = self.record_type
        return data


class FallbackExtractionFailedError(ExtractionError):
    """Raised when the fallback extractor fails while rebuilding a record.

    The underlying extractor error is available as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        field_hint: str,
        url: str | None = None,
    ) -> None:
        super().__init__(message, url=url)
        self.field_hint = field_hint

    def to_dict(self) -> dict[str, str | int | None]:
        data = super().to_dict()
        data["field_hint"] = self.field_hint
        return data


class NoItemsFoundError(ExtractionError):
    """Raised when collection extraction produced no records at all."""
