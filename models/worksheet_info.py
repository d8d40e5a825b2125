"""
Recognition result for a single worksheet.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .field_config import RecordType


class RecognitionStatus(Enum):
    """Whether a worksheet will be imported"""
    RECOGNIZED = "recognized"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class WorksheetInfo:
    """
    A parsed worksheet together with its classification.

    raw_rows holds every decoded row, header rows included; rows after
    header_row_index are data rows.
    """

    sheet_id: str
    file_path: str
    sheet_name: str
    record_type: RecordType
    header_row_index: int
    total_rows: int
    matched_fields: Tuple[str, ...] = ()
    recognition_status: RecognitionStatus = RecognitionStatus.UNRECOGNIZED
    failure_reason: Optional[str] = None
    raw_rows: Tuple[Tuple[Any, ...], ...] = field(default=(), repr=False)

    def __post_init__(self):
        if isinstance(self.record_type, str):
            object.__setattr__(self, 'record_type', RecordType(self.record_type))
        if isinstance(self.recognition_status, str):
            object.__setattr__(self, 'recognition_status', RecognitionStatus(self.recognition_status))
        if not isinstance(self.matched_fields, tuple):
            object.__setattr__(self, 'matched_fields', tuple(self.matched_fields))
        if not isinstance(self.raw_rows, tuple):
            object.__setattr__(self, 'raw_rows', tuple(tuple(row) for row in self.raw_rows))

    @property
    def data_rows(self) -> int:
        """Number of rows below the header row"""
        return max(0, self.total_rows - (self.header_row_index + 1))

    @property
    def matched_field_count(self) -> int:
        return len(self.matched_fields)

    @property
    def is_recognized(self) -> bool:
        return self.recognition_status is RecognitionStatus.RECOGNIZED

    @property
    def header_row(self) -> List[Any]:
        if self.header_row_index < len(self.raw_rows):
            return list(self.raw_rows[self.header_row_index])
        return []

    def iter_data_rows(self):
        """Yield (1-based data row position, row) pairs."""
        for position, row in enumerate(self.raw_rows[self.header_row_index + 1:], start=1):
            yield position, row

    def to_dict(self) -> Dict[str, Any]:
        """Summary without the raw row payload"""
        return {
            'sheet_id': self.sheet_id,
            'file_path': self.file_path,
            'sheet_name': self.sheet_name,
            'record_type': self.record_type.value,
            'header_row_index': self.header_row_index,
            'total_rows': self.total_rows,
            'data_rows': self.data_rows,
            'matched_fields': list(self.matched_fields),
            'matched_field_count': self.matched_field_count,
            'recognition_status': self.recognition_status.value,
            'failure_reason': self.failure_reason,
        }
