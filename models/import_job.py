"""
Import job, import settings and the issues a job accumulates.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from config.settings import DEFAULT_MATCH_MODE, DEFAULT_MIN_MATCH_FIELDS


class ImportStatus(Enum):
    """Import job status enumeration"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ImportStatus.COMPLETED, ImportStatus.FAILED)


class IssueScope(Enum):
    """Unit of work an issue is confined to"""
    FILE = "file"
    SHEET = "sheet"
    ROW = "row"
    FIELD = "field"


class MatchMode(Enum):
    STRICT = "strict"
    FUZZY = "fuzzy"


class UpdateFrequency(Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass
class ImportIssue:
    """A single problem recorded on a job"""
    scope: IssueScope
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'scope': self.scope.value,
            'message': self.message,
            'details': self.details,
        }


def _setting(data: Dict[str, Any], snake: str, camel: str, default):
    if snake in data:
        return data[snake]
    return data.get(camel, default)


def _bool_setting(data: Dict[str, Any], snake: str, camel: str, default: bool) -> bool:
    value = _setting(data, snake, camel, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
        return value.strip().lower() == 'true'
    raise ValueError(f"{snake} must be a boolean or 'true'/'false', got {value!r}")


@dataclass
class ImportSettings:
    """
    Per-job import options.

    match_mode 'strict' additionally requires every required field of the
    chosen record type; 'fuzzy' only applies the min_match_fields count.
    """

    match_mode: MatchMode = MatchMode(DEFAULT_MATCH_MODE)
    min_match_fields: int = DEFAULT_MIN_MATCH_FIELDS
    skip_empty_rows: bool = True
    trim_whitespace: bool = True
    validate_data: bool = True
    auto_update_enabled: bool = False
    update_frequency: UpdateFrequency = UpdateFrequency.DAILY

    def __post_init__(self):
        """Validate settings after initialization"""
        if isinstance(self.match_mode, str):
            self.match_mode = MatchMode(self.match_mode)
        if isinstance(self.update_frequency, str):
            self.update_frequency = UpdateFrequency(self.update_frequency)

        if isinstance(self.min_match_fields, bool) or not isinstance(self.min_match_fields, int):
            raise ValueError(f"min_match_fields must be an integer, got {self.min_match_fields!r}")
        if self.min_match_fields < 1:
            raise ValueError(f"min_match_fields must be at least 1, got {self.min_match_fields}")

    @property
    def strict(self) -> bool:
        return self.match_mode is MatchMode.STRICT

    def to_dict(self) -> Dict[str, Any]:
        return {
            'match_mode': self.match_mode.value,
            'min_match_fields': self.min_match_fields,
            'skip_empty_rows': self.skip_empty_rows,
            'trim_whitespace': self.trim_whitespace,
            'validate_data': self.validate_data,
            'auto_update_enabled': self.auto_update_enabled,
            'update_frequency': self.update_frequency.value,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ImportSettings':
        """Create settings from a dict with snake_case or camelCase keys"""
        data = data or {}
        defaults = cls()
        return cls(
            match_mode=_setting(data, 'match_mode', 'matchMode', defaults.match_mode),
            min_match_fields=_setting(data, 'min_match_fields', 'minMatchFields', defaults.min_match_fields),
            skip_empty_rows=_bool_setting(data, 'skip_empty_rows', 'skipEmptyRows', defaults.skip_empty_rows),
            trim_whitespace=_bool_setting(data, 'trim_whitespace', 'trimWhitespace', defaults.trim_whitespace),
            validate_data=_bool_setting(data, 'validate_data', 'validateData', defaults.validate_data),
            auto_update_enabled=_bool_setting(
                data, 'auto_update_enabled', 'autoUpdateEnabled', defaults.auto_update_enabled
            ),
            update_frequency=_setting(data, 'update_frequency', 'updateFrequency', defaults.update_frequency),
        )


@dataclass
class ImportJob:
    """Progress and outcome of one import request"""

    file_paths: List[str]
    settings: ImportSettings = field(default_factory=ImportSettings)
    import_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: ImportStatus = ImportStatus.PENDING
    total_files: int = 0
    processed_files: int = 0
    total_sheets: int = 0
    processed_sheets: int = 0
    total_rows: int = 0
    processed_rows: int = 0
    error_rows: int = 0
    progress_percent: int = 0
    current_step: str = "Waiting to start"
    errors: List[ImportIssue] = field(default_factory=list)
    dropped_issues: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        self.file_paths = [str(p) for p in self.file_paths]
        if not self.total_files:
            self.total_files = len(self.file_paths)

    def add_issue(self, scope: IssueScope, message: str,
                  details: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> bool:
        """
        Append an issue unless the list is full.

        Once `limit` entries are stored, further issues are only counted and
        a single truncation notice is appended.

        Returns:
            True if the issue was stored
        """
        if limit is not None and len(self.errors) - (1 if self.dropped_issues else 0) >= limit:
            self.dropped_issues += 1
            notice = f"Too many issues; {self.dropped_issues} more not recorded"
            if self.dropped_issues == 1:
                self.errors.append(ImportIssue(IssueScope.FILE, notice))
            else:
                self.errors[-1].message = notice
            return False

        self.errors.append(ImportIssue(scope, message, details))
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert job to a JSON-friendly dictionary"""
        return {
            'import_id': self.import_id,
            'status': self.status.value,
            'file_paths': list(self.file_paths),
            'settings': self.settings.to_dict(),
            'total_files': self.total_files,
            'processed_files': self.processed_files,
            'total_sheets': self.total_sheets,
            'processed_sheets': self.processed_sheets,
            'total_rows': self.total_rows,
            'processed_rows': self.processed_rows,
            'error_rows': self.error_rows,
            'progress_percent': self.progress_percent,
            'current_step': self.current_step,
            'errors': [issue.to_dict() for issue in self.errors],
            'created_at': self.created_at.isoformat(),
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }
