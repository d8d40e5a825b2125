"""
Canonical field catalog entries for contract and procurement records.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Union


class RecordType(Enum):
    """Record types a worksheet can hold."""
    CONTRACT = "contract"
    PROCUREMENT = "procurement"
    UNKNOWN = "unknown"

    @property
    def table_name(self) -> str:
        """Destination table for records of this type."""
        if self is RecordType.UNKNOWN:
            raise ValueError("Unknown record type has no table")
        return f"{self.value}s"

    @classmethod
    def known(cls) -> list:
        """Record types that map to a table."""
        return [cls.CONTRACT, cls.PROCUREMENT]


class FieldCategory(Enum):
    """Storage category of a canonical field."""
    CORE = "core"
    EXTENDED = "extended"


class FieldDataType(Enum):
    """Declared value type of a canonical field."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"


def parse_aliases(raw: Union[str, Iterable[str], None]) -> FrozenSet[str]:
    """Split a comma-separated alias string (or iterable) into a clean alias set."""
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        raw = raw.split(',')
    return frozenset(alias.strip() for alias in raw if alias and alias.strip())


def normalize_label(label: Any) -> str:
    """Normalize a header label or alias for comparison."""
    if not isinstance(label, str):
        return ""
    return label.strip().casefold()


@dataclass(frozen=True)
class FieldConfig:
    """
    A canonical field and the header labels that resolve to it.

    Core fields own a dedicated column in the record table; extended
    fields are stored inside the record's extendedFields JSON blob.
    """

    name: str
    record_type: RecordType
    aliases: FrozenSet[str] = field(default_factory=frozenset)
    label: str = ""
    category: FieldCategory = FieldCategory.EXTENDED
    data_type: FieldDataType = FieldDataType.TEXT
    display_order: int = 0
    required: bool = False
    column_name: Optional[str] = None
    active: bool = True

    def __post_init__(self):
        """Validate and coerce enum-typed attributes."""
        if not self.name or not self.name.strip():
            raise ValueError("Field name is required")

        # frozen dataclass: coerce through object.__setattr__
        coerce = {
            'record_type': RecordType,
            'category': FieldCategory,
            'data_type': FieldDataType,
        }
        for attr, enum_cls in coerce.items():
            value = getattr(self, attr)
            if isinstance(value, str):
                try:
                    object.__setattr__(self, attr, enum_cls(value.lower()))
                except ValueError:
                    raise ValueError(f"Invalid {attr} for field '{self.name}': {value}")

        if self.record_type is RecordType.UNKNOWN:
            raise ValueError(f"Field '{self.name}' must belong to contract or procurement")

        if not isinstance(self.aliases, frozenset):
            object.__setattr__(self, 'aliases', parse_aliases(self.aliases))
        if not self.label:
            object.__setattr__(self, 'label', sorted(self.aliases)[0] if self.aliases else self.name)

    @property
    def is_core(self) -> bool:
        return self.category is FieldCategory.CORE

    @property
    def storage_column(self) -> str:
        """Database column holding this field (core fields only)."""
        return self.column_name or self.name

    def normalized_labels(self) -> FrozenSet[str]:
        """Normalized name plus every normalized alias."""
        labels = {normalize_label(self.name)}
        labels.update(normalize_label(alias) for alias in self.aliases)
        labels.discard("")
        return frozenset(labels)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'name': self.name,
            'label': self.label,
            'aliases': sorted(self.aliases),
            'record_type': self.record_type.value,
            'category': self.category.value,
            'data_type': self.data_type.value,
            'display_order': self.display_order,
            'required': self.required,
            'column_name': self.column_name,
            'active': self.active,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'FieldConfig':
        """Create a FieldConfig from a fieldConfigs table row."""
        raw_aliases = row.get('fieldAlias')
        aliases = parse_aliases(raw_aliases)
        first_alias = ""
        if isinstance(raw_aliases, str):
            first_alias = next((a.strip() for a in raw_aliases.split(',') if a.strip()), "")
        return cls(
            name=row['fieldName'],
            record_type=row['fieldType'],
            aliases=aliases,
            label=first_alias or row['fieldName'],
            category=row.get('fieldCategory') or FieldCategory.EXTENDED.value,
            data_type=row.get('dataType') or FieldDataType.TEXT.value,
            display_order=int(row.get('displayOrder') or 0),
            required=bool(row.get('isRequired')),
            column_name=row.get('databaseColumn'),
            active=bool(row.get('isActive', 1)),
        )
