"""Result types for adaptive extraction."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar, cast

from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")


class ExtractionSource(str, Enum):
    """Where the values of an extracted record came from.

    - STRUCTURED_PARSING: Selector/structure based parsing only
    - FALLBACK_EXTRACTION: At least one value came from the fallback extractor
    """

    STRUCTURED_PARSING = "structured_parsing"
    FALLBACK_EXTRACTION = "fallback_extraction"


class FieldPatchWarning(BaseModel):
    """A required field the fallback extractor could not fill.

    Attributes:
        field_name: Record attribute that stayed empty.
        field_hint: Hint that was sent to the fallback extractor.
        reason: Why the patch was not applied.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    field_name: str = Field(min_length=1)
    field_hint: str = Field(min_length=1)
    reason: str = Field(min_length=1)


@dataclass(frozen=True)
class ExtractionResult(Generic[T]):
    """Outcome of one extraction: a value with its source, or an error.

    Build instances with :meth:`success` or :meth:`failure`.
    """

    value: T | None = None
    source: ExtractionSource | None = None
    error: Exception | None = None
    warnings: tuple[FieldPatchWarning, ...] = field(default_factory=tuple)

    @classmethod
    def success(
        cls,
        value: T,
        source: ExtractionSource,
        warnings: list[FieldPatchWarning] | tuple[FieldPatchWarning, ...] = (),
    ) -> "ExtractionResult[T]":
        """Create a successful result."""
        return cls(value=value, source=source, warnings=tuple(warnings))

    @classmethod
    def failure(cls, error: Exception) -> "ExtractionResult[T]":
        """Create a failed result."""
        return cls(error=error)

    @property
    def is_success(self) -> bool:
        """Check whether the result carries a value."""
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise the stored error.

        Raises:
            Exception: The error of a failed result.
        """
        if self.error is not None:
            raise self.error
        return cast(T, self.value)
