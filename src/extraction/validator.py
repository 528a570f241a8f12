"""Completeness checks for parsed records."""

from src.extraction.records import FieldDescriptor, StructuredRecord


def is_empty(value: object) -> bool:
    """Check whether a field value counts as empty.

    ``None``, whitespace-only strings and empty collections are empty.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | tuple | set | dict):
        return not value
    return False


class CompletenessValidator:
    """Reports required fields a record left empty.

    A non-empty report is a signal to try fallback extraction, not an
    error: the record was parsed but is semantically insufficient.
    """

    def missing_fields(self, record: StructuredRecord) -> list[FieldDescriptor]:
        """Return descriptors of the empty required fields, in declared order."""
        return [
            descriptor
            for descriptor in record.required_fields()
            if is_empty(getattr(record, descriptor.name, None))
        ]

    def validate(self, record: StructuredRecord) -> list[str]:
        """Return the names of the empty required fields."""
        return [descriptor.name for descriptor in self.missing_fields(record)]

    def is_complete(self, record: StructuredRecord) -> bool:
        """Check whether every required field is populated."""
        return not self.missing_fields(record)
