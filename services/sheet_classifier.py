"""
Worksheet classification into contract, procurement or unknown.
"""

import uuid
from typing import Any, List, Optional, Sequence

from loguru import logger

from models.field_config import RecordType
from models.import_job import ImportSettings
from models.worksheet_info import RecognitionStatus, WorksheetInfo

from .field_alias_index import FieldAliasIndex
from .header_detector import HeaderRowDetector


def _distinct(names: Sequence[str]) -> List[str]:
    seen = set()
    return [n for n in names if not (n in seen or seen.add(n))]


class SheetClassifier:
    """
    Decides the record type of a worksheet from its header row and whether
    enough fields matched for the sheet to be imported.
    """

    def __init__(self, index: FieldAliasIndex, detector: Optional[HeaderRowDetector] = None):
        self.index = index
        self.detector = detector or HeaderRowDetector(index)

    def choose_record_type(self, contract_matches: int, procurement_matches: int) -> RecordType:
        """Contract wins ties; no matches at all is unknown"""
        if contract_matches >= procurement_matches and contract_matches > 0:
            return RecordType.CONTRACT
        if procurement_matches > 0:
            return RecordType.PROCUREMENT
        return RecordType.UNKNOWN

    def classify(self, file_path: str, sheet_name: str, rows: Sequence[Sequence[Any]],
                 settings: Optional[ImportSettings] = None) -> WorksheetInfo:
        """Build the WorksheetInfo for one decoded sheet"""
        settings = settings or ImportSettings()

        header_index = self.detector.detect(rows)
        header = rows[header_index] if header_index < len(rows) else []

        contract_fields = _distinct(self.index.match_headers(header, RecordType.CONTRACT))
        procurement_fields = _distinct(self.index.match_headers(header, RecordType.PROCUREMENT))
        record_type = self.choose_record_type(len(contract_fields), len(procurement_fields))

        if record_type is RecordType.CONTRACT:
            matched = contract_fields
        elif record_type is RecordType.PROCUREMENT:
            matched = procurement_fields
        else:
            matched = []

        failure_reason = self._failure_reason(record_type, matched, settings)
        status = RecognitionStatus.UNRECOGNIZED if failure_reason else RecognitionStatus.RECOGNIZED

        info = WorksheetInfo(
            sheet_id=str(uuid.uuid4()),
            file_path=str(file_path),
            sheet_name=sheet_name,
            record_type=record_type,
            header_row_index=header_index,
            total_rows=len(rows),
            matched_fields=matched,
            recognition_status=status,
            failure_reason=failure_reason,
            raw_rows=rows,
        )

        if info.is_recognized:
            logger.info(
                f"Sheet '{sheet_name}' recognized as {record_type.value} "
                f"({info.matched_field_count} fields, header row {header_index})"
            )
        else:
            logger.warning(f"Sheet '{sheet_name}' not recognized: {failure_reason}")
        return info

    def _failure_reason(self, record_type: RecordType, matched: List[str],
                        settings: ImportSettings) -> Optional[str]:
        problems = []
        if len(matched) < settings.min_match_fields:
            problems.append(
                f"insufficient matched fields: need at least {settings.min_match_fields}, "
                f"matched {len(matched)}"
            )

        if settings.strict and record_type is not RecordType.UNKNOWN:
            missing = [f.name for f in self.index.required_fields(record_type) if f.name not in matched]
            if missing:
                problems.append(f"missing required fields: {', '.join(missing)}")

        if not problems:
            return None

        available = ', '.join(self.index.available_record_types()) or 'none'
        return f"{'; '.join(problems)}. Available record types: {available}"
