"""
Rule-driven cleaning of raw cell values.

Rules for a field run in priority order, each receiving the previous
rule's output. A rule that cannot interpret its input hands the value on
unchanged; a rule that raises restores the field's original value and
marks the field as an error.
"""

import re
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from loguru import logger

from models.cleaning_rule import (
    CleaningKind,
    CleaningRule,
    DateFormatConfig,
    NumberFormatConfig,
    RemoveCharsConfig,
    TextCleanConfig,
)
from models.field_config import RecordType

from .config_store import ConfigStore
from .errors import ConfigurationError, FieldCleaningError

_NUMBER_PATTERN = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$')
_LINE_BREAKS = re.compile(r'[\r\n]')
_WHITESPACE = re.compile(r'\s+')

STATUS_SUCCESS = 'success'
STATUS_WARNING = 'warning'
STATUS_ERROR = 'error'


def normalize_text(value: Any) -> Any:
    """Default cleaning for fields without rules: trim, collapse whitespace, empty to None"""
    if value is None:
        return None
    if isinstance(value, str):
        value = _WHITESPACE.sub(' ', value).strip()
        return value or None
    return value


def _json_safe(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


@dataclass
class CleaningResult:
    """Outcome of cleaning one field value"""
    field_name: str
    original_value: Any
    cleaned_value: Any
    applied_rules: List[str] = field(default_factory=list)
    status: str = STATUS_SUCCESS
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fieldName': self.field_name,
            'originalValue': _json_safe(self.original_value),
            'cleanedValue': _json_safe(self.cleaned_value),
            'appliedRules': list(self.applied_rules),
            'status': self.status,
            'message': self.message,
        }


@dataclass
class CleaningLog:
    """Per-record summary of every field that went through cleaning rules"""
    table_name: str
    results: List[CleaningResult] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def total_fields(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_SUCCESS)

    @property
    def warning_count(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_WARNING)

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_ERROR)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tableName': self.table_name,
            'results': [r.to_dict() for r in self.results],
            'timestamp': self.timestamp.isoformat(),
            'totalFields': self.total_fields,
            'successCount': self.success_count,
            'warningCount': self.warning_count,
            'errorCount': self.error_count,
        }


class CleaningRuleEngine:
    """Applies cleaning rules grouped by (record type, field name)"""

    def __init__(self, store: Optional[ConfigStore] = None,
                 rules: Optional[Sequence[CleaningRule]] = None):
        self.store = store
        self._lock = threading.Lock()
        self._rules: Dict[Tuple[RecordType, str], List[CleaningRule]] = {}

        if rules is not None:
            self.load_rules(rules)
        elif store is not None:
            self.refresh()

    def refresh(self):
        """Reload active rules from the config store"""
        if self.store is None:
            raise ConfigurationError("CleaningRuleEngine has no config store to refresh from")
        self.load_rules(self.store.load_active_cleaning_rules())

    def load_rules(self, rules: Sequence[CleaningRule]):
        """Replace the rule set; rules are grouped per field and ordered by priority"""
        grouped: Dict[Tuple[RecordType, str], List[CleaningRule]] = {}
        for rule in rules:
            if rule.active:
                grouped.setdefault((rule.record_type, rule.field_name), []).append(rule)
        for key in grouped:
            # sorted() is stable, so equal priorities keep load order
            grouped[key] = sorted(grouped[key], key=lambda r: r.priority)

        with self._lock:
            self._rules = grouped
        logger.info(f"Loaded cleaning rules for {len(grouped)} fields")

    def rules_for(self, record_type: Union[RecordType, str], field_name: str) -> List[CleaningRule]:
        return list(self._rules.get((RecordType(record_type), field_name), []))

    def clean_field(self, record_type: Union[RecordType, str], field_name: str, value: Any) -> CleaningResult:
        """Clean one value with the rules configured for its field"""
        rules = self.rules_for(record_type, field_name)
        if not rules:
            return CleaningResult(field_name, value, value)
        return self.clean_value(value, rules, field_name=field_name)

    def clean_value(self, value: Any, rules: Sequence[CleaningRule],
                    field_name: Optional[str] = None) -> CleaningResult:
        """
        Run value through rules in order.

        Returns:
            CleaningResult with status 'error' (original value kept) if a
            rule raised, 'warning' if the result is empty, else 'success'
        """
        if field_name is None:
            field_name = rules[0].field_name if rules else ""

        cleaned = value
        applied = []
        status = STATUS_SUCCESS
        message = ""
        current_rule = None

        try:
            for current_rule in rules:
                previous = cleaned
                cleaned = self._apply(current_rule, cleaned)
                if not _same_value(previous, cleaned):
                    applied.append(current_rule.name)

            if cleaned is None or cleaned == "":
                status = STATUS_WARNING
                message = "Value is empty after cleaning"

        except Exception as e:
            error = FieldCleaningError(field_name, current_rule.name if current_rule else "", str(e))
            logger.error(f"Cleaning failed for field '{field_name}' in rule '{error.rule_name}': {e}")
            status = STATUS_ERROR
            message = f"{type(error).__name__}: {error.rule_name}: {error}"
            cleaned = value

        return CleaningResult(field_name, value, cleaned, applied, status, message)

    def clean_record(self, data: Dict[str, Any],
                     record_type: Union[RecordType, str]) -> Tuple[Dict[str, Any], CleaningLog]:
        """
        Clean every field of a record that has rules.

        Null values and fields without rules are copied through untouched.
        """
        record_type = RecordType(record_type)
        cleaned = dict(data)
        log = CleaningLog(table_name=record_type.table_name)

        for field_name, value in data.items():
            if value is None:
                continue
            rules = self.rules_for(record_type, field_name)
            if not rules:
                continue
            result = self.clean_value(value, rules, field_name=field_name)
            log.results.append(result)
            cleaned[field_name] = result.cleaned_value

        logger.debug(
            f"Cleaned {log.total_fields} fields for {log.table_name}: "
            f"{log.warning_count} warnings, {log.error_count} errors"
        )
        return cleaned, log

    def _apply(self, rule: CleaningRule, value: Any) -> Any:
        handlers = {
            CleaningKind.DATE_FORMAT: self._clean_date,
            CleaningKind.NUMBER_FORMAT: self._clean_number,
            CleaningKind.TEXT_CLEAN: self._clean_text,
            CleaningKind.REMOVE_CHARS: self._remove_chars,
            CleaningKind.TRIM_SPACES: self._trim_spaces,
        }
        return handlers[rule.kind](value, rule.config)

    @staticmethod
    def _clean_date(value: Any, config: DateFormatConfig) -> Any:
        if isinstance(value, (datetime, date)):
            return config.output_template.format(value)
        if not value or not isinstance(value, str):
            return value

        text = _LINE_BREAKS.sub('', value).strip()
        if text in config.null_values:
            return None

        for strptime_format in config.strptime_formats:
            try:
                parsed = datetime.strptime(text, strptime_format).date()
            except ValueError:
                continue
            return config.output_template.format(parsed)

        return value

    @staticmethod
    def _clean_number(value: Any, config: NumberFormatConfig) -> Any:
        if value is None:
            return None
        if isinstance(value, bool):
            return value

        text = str(value)
        for chars in config.remove_chars:
            text = text.replace(chars, '')
        text = _WHITESPACE.sub('', text)

        if not text or text in config.null_values:
            return None
        if not _NUMBER_PATTERN.match(text):
            return value

        if config.decimal_places is None:
            return float(text)
        try:
            quantum = Decimal(1).scaleb(-config.decimal_places)
            return float(Decimal(text).quantize(quantum, rounding=ROUND_HALF_UP))
        except InvalidOperation:
            return round(float(text), config.decimal_places)

    @staticmethod
    def _clean_text(value: Any, config: TextCleanConfig) -> Any:
        if not value or not isinstance(value, str):
            return value

        text = value
        if config.remove_line_breaks:
            text = _LINE_BREAKS.sub(' ', text)
        if config.normalize_spaces:
            text = _WHITESPACE.sub(' ', text)
        if config.trim:
            text = text.strip()

        if not text or text in config.null_values:
            return None
        return text

    @staticmethod
    def _remove_chars(value: Any, config: RemoveCharsConfig) -> Any:
        if not value or not isinstance(value, str):
            return value
        for chars in config.characters:
            value = value.replace(chars, '')
        return value

    @staticmethod
    def _trim_spaces(value: Any, config) -> Any:
        if not value or not isinstance(value, str):
            return value
        return value.strip()


def _same_value(a: Any, b: Any) -> bool:
    """Strict equality: 100000 and '100000' differ, 100000 and 100000.0 do not"""
    if isinstance(a, str) != isinstance(b, str):
        return False
    return a == b
