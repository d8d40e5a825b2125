# Data models for the contract/procurement import pipeline

from .field_config import FieldCategory, FieldConfig, FieldDataType, RecordType
from .cleaning_rule import (
    CleaningKind,
    CleaningRule,
    DateFormatConfig,
    NumberFormatConfig,
    RemoveCharsConfig,
    TextCleanConfig,
    TrimSpacesConfig,
)
from .worksheet_info import RecognitionStatus, WorksheetInfo
from .import_job import ImportIssue, ImportJob, ImportSettings, ImportStatus, IssueScope, MatchMode

__all__ = [
    'FieldCategory',
    'FieldConfig',
    'FieldDataType',
    'RecordType',
    'CleaningKind',
    'CleaningRule',
    'DateFormatConfig',
    'NumberFormatConfig',
    'RemoveCharsConfig',
    'TextCleanConfig',
    'TrimSpacesConfig',
    'RecognitionStatus',
    'WorksheetInfo',
    'ImportIssue',
    'ImportJob',
    'ImportSettings',
    'ImportStatus',
    'IssueScope',
    'MatchMode'
]
