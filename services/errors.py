"""
Exception taxonomy for the import pipeline.

Each class marks the unit of work an error is confined to. The coordinator
catches at the matching scope, records the failure on the job and moves on
to the next coarser unit; nothing here is meant to cross a scope boundary.
"""


class ImportPipelineError(Exception):
    """Base exception for import pipeline errors."""
    pass


class FileError(ImportPipelineError):
    """Raised when a file is missing, has a disallowed extension, is too large or cannot be decoded."""

    def __init__(self, file_path, message: str):
        self.file_path = str(file_path)
        super().__init__(message)


class SheetError(ImportPipelineError):
    """Raised when a worksheet cannot be parsed or imported."""

    def __init__(self, sheet_name: str, message: str):
        self.sheet_name = sheet_name
        super().__init__(message)


class FieldCleaningError(ImportPipelineError):
    """Raised when a cleaning rule fails on a single value."""

    def __init__(self, field_name: str, rule_name: str, message: str):
        self.field_name = field_name
        self.rule_name = rule_name
        super().__init__(message)


class RowPersistError(ImportPipelineError):
    """Raised when a single row cannot be inserted."""

    def __init__(self, row_number: int, message: str):
        self.row_number = row_number
        super().__init__(message)


class JobError(ImportPipelineError):
    """Raised for failures that abort a whole import job."""
    pass


class ConfigurationError(ImportPipelineError):
    """Raised when the field or rule catalog is inconsistent."""
    pass


class AliasCollisionError(ConfigurationError):
    """Raised when two fields of one record type share a header alias."""

    def __init__(self, record_type: str, alias: str, first_field: str, second_field: str):
        self.record_type = record_type
        self.alias = alias
        self.fields = (first_field, second_field)
        super().__init__(
            f"Alias '{alias}' is claimed by both '{first_field}' and '{second_field}' "
            f"in {record_type} fields"
        )


class RuleConfigError(ConfigurationError, ValueError):
    """Raised when a cleaning rule's configuration is malformed."""
    pass
