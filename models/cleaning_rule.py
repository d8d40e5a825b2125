"""
Cleaning rule model: one typed configuration per cleaning kind.
"""
import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from services.errors import RuleConfigError

from .field_config import FieldDataType, RecordType


class CleaningKind(Enum):
    """Supported cleaning rule kinds."""
    DATE_FORMAT = "date_format"
    NUMBER_FORMAT = "number_format"
    TEXT_CLEAN = "text_clean"
    REMOVE_CHARS = "remove_chars"
    TRIM_SPACES = "trim_spaces"


# Format tokens in stored rules; alternation order keeps 'YYYY' from reading as two 'YY'
_DATE_TOKEN = re.compile(r'YYYY|YY|MM|M|DD|D')

# strptime accepts one or two digits for %m and %d, so M/D parse like MM/DD
_STRPTIME_DIRECTIVES = {'YYYY': '%Y', 'YY': '%y', 'MM': '%m', 'M': '%m', 'DD': '%d', 'D': '%d'}

# str.format template pieces; M and D render without zero padding
_OUTPUT_DIRECTIVES = {
    'YYYY': '{0:%Y}', 'YY': '{0:%y}', 'MM': '{0:%m}', 'M': '{0.month}', 'DD': '{0:%d}', 'D': '{0.day}',
}


def _translate_date_format(fmt: str, directives: Dict[str, str], escape) -> str:
    if not isinstance(fmt, str) or not fmt.strip():
        raise RuleConfigError(f"Invalid date format: {fmt!r}")

    parts = []
    seen = []
    position = 0
    for match in _DATE_TOKEN.finditer(fmt):
        token = match.group()
        part = {'Y': 'year', 'M': 'month', 'D': 'day'}[token[0]]
        if part in seen:
            raise RuleConfigError(f"Date format '{fmt}' repeats {part}")
        seen.append(part)
        parts.append(escape(fmt[position:match.start()]))
        parts.append(directives[token])
        position = match.end()
    parts.append(escape(fmt[position:]))

    if len(seen) != 3:
        raise RuleConfigError(f"Date format '{fmt}' must contain year, month and day")
    return ''.join(parts)


def to_strptime_format(fmt: str) -> str:
    """
    Translate a rule format such as 'YYYY年MM月DD日' to '%Y年%m月%d日'.

    Raises:
        RuleConfigError: If the format repeats or omits a year/month/day part
    """
    return _translate_date_format(fmt, _STRPTIME_DIRECTIVES, lambda s: s.replace('%', '%%'))


def to_output_template(fmt: str) -> str:
    """Translate a rule output format to a str.format template taking one date."""
    return _translate_date_format(
        fmt, _OUTPUT_DIRECTIVES, lambda s: s.replace('{', '{{').replace('}', '}}')
    )


def _string_list(data: Dict[str, Any], key: str) -> Tuple[str, ...]:
    value = data.get(key) or []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise RuleConfigError(f"'{key}' must be a list of strings")
    return tuple(value)


def _flag(data: Dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise RuleConfigError(f"'{key}' must be a boolean")
    return value


@dataclass(frozen=True)
class DateFormatConfig:
    """Candidate input formats, tried in order, and the output format."""
    formats: Tuple[str, ...]
    output: str = "YYYY-MM-DD"
    null_values: Tuple[str, ...] = ()
    strptime_formats: Tuple[str, ...] = field(default=(), compare=False, repr=False)
    output_template: str = field(default="", compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'strptime_formats', tuple(to_strptime_format(f) for f in self.formats))
        object.__setattr__(self, 'output_template', to_output_template(self.output))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DateFormatConfig':
        output = data.get('output') or "YYYY-MM-DD"
        if not isinstance(output, str):
            raise RuleConfigError("'output' must be a string")
        return cls(
            formats=_string_list(data, 'formats'),
            output=output,
            null_values=_string_list(data, 'nullValues'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'formats': list(self.formats), 'output': self.output, 'nullValues': list(self.null_values)}


@dataclass(frozen=True)
class NumberFormatConfig:
    """Characters to strip before parsing and the rounding precision."""
    remove_chars: Tuple[str, ...] = ()
    decimal_places: Optional[int] = None
    null_values: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NumberFormatConfig':
        places = data.get('decimal_places')
        if places is not None and (isinstance(places, bool) or not isinstance(places, int) or places < 0):
            raise RuleConfigError("'decimal_places' must be a non-negative integer")
        return cls(
            remove_chars=tuple(c for c in _string_list(data, 'remove_chars') if c),
            decimal_places=places,
            null_values=_string_list(data, 'nullValues'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'remove_chars': list(self.remove_chars),
            'decimal_places': self.decimal_places,
            'nullValues': list(self.null_values),
        }


@dataclass(frozen=True)
class TextCleanConfig:
    """Whitespace normalization flags."""
    remove_line_breaks: bool = False
    normalize_spaces: bool = False
    trim: bool = False
    null_values: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TextCleanConfig':
        return cls(
            remove_line_breaks=_flag(data, 'remove_line_breaks', False),
            normalize_spaces=_flag(data, 'normalize_spaces', False),
            trim=_flag(data, 'trim', False),
            null_values=_string_list(data, 'nullValues'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'remove_line_breaks': self.remove_line_breaks,
            'normalize_spaces': self.normalize_spaces,
            'trim': self.trim,
            'nullValues': list(self.null_values),
        }


@dataclass(frozen=True)
class RemoveCharsConfig:
    """Literal characters or substrings to delete."""
    characters: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RemoveCharsConfig':
        return cls(characters=tuple(c for c in _string_list(data, 'characters') if c))

    def to_dict(self) -> Dict[str, Any]:
        return {'characters': list(self.characters)}


@dataclass(frozen=True)
class TrimSpacesConfig:
    """Trim has no parameters."""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TrimSpacesConfig':
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        return {}


RuleConfig = Union[DateFormatConfig, NumberFormatConfig, TextCleanConfig, RemoveCharsConfig, TrimSpacesConfig]

RULE_CONFIG_TYPES = {
    CleaningKind.DATE_FORMAT: DateFormatConfig,
    CleaningKind.NUMBER_FORMAT: NumberFormatConfig,
    CleaningKind.TEXT_CLEAN: TextCleanConfig,
    CleaningKind.REMOVE_CHARS: RemoveCharsConfig,
    CleaningKind.TRIM_SPACES: TrimSpacesConfig,
}


def parse_rule_config(kind: CleaningKind, raw: Union[str, Dict[str, Any], None]) -> RuleConfig:
    """
    Build the typed config for a rule kind from its stored JSON.

    Raises:
        RuleConfigError: If the JSON is malformed or a parameter has the wrong type
    """
    if raw is None or raw == "":
        data = {}
    elif isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise RuleConfigError(f"Rule config is not valid JSON: {e}")
    else:
        data = raw

    if not isinstance(data, dict):
        raise RuleConfigError("Rule config must be a JSON object")

    return RULE_CONFIG_TYPES[kind].from_dict(data)


@dataclass(frozen=True)
class CleaningRule:
    """
    A single cleaning step for one field of one record type.

    Rules for the same field run in ascending priority; ties keep load order.
    """

    field_name: str
    record_type: RecordType
    kind: CleaningKind
    config: RuleConfig
    data_type: FieldDataType = FieldDataType.TEXT
    priority: int = 0
    active: bool = True
    description: Optional[str] = None
    rule_id: Optional[int] = None

    def __post_init__(self):
        """Coerce enums and make sure the config matches the kind."""
        for attr, enum_cls in (('record_type', RecordType), ('kind', CleaningKind), ('data_type', FieldDataType)):
            value = getattr(self, attr)
            if isinstance(value, str):
                try:
                    object.__setattr__(self, attr, enum_cls(value))
                except ValueError:
                    raise RuleConfigError(f"Invalid {attr} for rule on '{self.field_name}': {value}")

        if isinstance(self.config, dict):
            object.__setattr__(self, 'config', parse_rule_config(self.kind, self.config))

        expected = RULE_CONFIG_TYPES[self.kind]
        if not isinstance(self.config, expected):
            raise RuleConfigError(
                f"Rule '{self.kind.value}' on '{self.field_name}' needs {expected.__name__}, "
                f"got {type(self.config).__name__}"
            )
        if self.priority < 0:
            raise RuleConfigError(f"Rule priority must be >= 0, got {self.priority}")

    @property
    def name(self) -> str:
        """Name recorded in cleaning logs."""
        return self.description or self.kind.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rule_id': self.rule_id,
            'field_name': self.field_name,
            'record_type': self.record_type.value,
            'data_type': self.data_type.value,
            'kind': self.kind.value,
            'config': self.config.to_dict(),
            'priority': self.priority,
            'active': self.active,
            'description': self.description,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'CleaningRule':
        """Create a CleaningRule from a dataCleaningRules table row."""
        try:
            kind = CleaningKind(row['cleaningType'])
        except ValueError:
            raise RuleConfigError(f"Unknown cleaning type: {row['cleaningType']}")

        return cls(
            field_name=row['fieldName'],
            record_type=row['fieldType'],
            kind=kind,
            config=parse_rule_config(kind, row.get('ruleConfig')),
            data_type=row.get('dataType') or FieldDataType.TEXT.value,
            priority=int(row.get('priority') or 0),
            active=bool(row.get('isActive', 1)),
            description=row.get('description'),
            rule_id=row.get('id'),
        )
