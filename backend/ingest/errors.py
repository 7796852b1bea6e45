"""Ingestion error types."""


class StructuralError(ValueError):
    """The workbook's shape is wrong (sheet, columns, no data); the whole parse is aborted."""


class RowError(ValueError):
    """A single row could not be coerced; the row is rejected and parsing continues."""
