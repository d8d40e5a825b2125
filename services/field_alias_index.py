"""
Lookup from loosely-labeled header cells to canonical field names.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from loguru import logger

from models.field_config import FieldConfig, RecordType, normalize_label

from .config_store import ConfigStore
from .errors import AliasCollisionError, ConfigurationError


@dataclass(frozen=True)
class _IndexSnapshot:
    """Immutable view swapped in as a whole by refresh()"""
    fields: Dict[RecordType, List[FieldConfig]] = field(default_factory=dict)
    labels: Dict[RecordType, Dict[str, str]] = field(default_factory=dict)
    record_types: List[RecordType] = field(default_factory=list)


def _build_snapshot(configs: Iterable[FieldConfig]) -> _IndexSnapshot:
    """
    Index active configs by record type and normalized label.

    Raises:
        AliasCollisionError: If a label resolves to two fields of one record type
    """
    snapshot = _IndexSnapshot()
    for config in configs:
        if not config.active:
            continue
        record_type = config.record_type
        if record_type not in snapshot.fields:
            snapshot.fields[record_type] = []
            snapshot.labels[record_type] = {}
            snapshot.record_types.append(record_type)

        labels = snapshot.labels[record_type]
        if any(f.name == config.name for f in snapshot.fields[record_type]):
            raise ConfigurationError(f"Duplicate {record_type.value} field '{config.name}'")

        for label in config.normalized_labels():
            owner = labels.get(label)
            if owner is not None and owner != config.name:
                raise AliasCollisionError(record_type.value, label, owner, config.name)
            labels[label] = config.name
        snapshot.fields[record_type].append(config)
    return snapshot


class FieldAliasIndex:
    """
    Resolves header labels to canonical field names per record type.

    Matching is exact after strip() and casefold(); a label matches a field
    when it equals the field's name or one of its aliases.
    """

    def __init__(self, store: Optional[ConfigStore] = None,
                 configs: Optional[Iterable[FieldConfig]] = None):
        self.store = store
        self._lock = threading.Lock()
        self._snapshot = _IndexSnapshot()

        if configs is not None:
            self._snapshot = _build_snapshot(configs)
        elif store is not None:
            self.refresh()

    def refresh(self):
        """Rebuild the index from the config store"""
        if self.store is None:
            raise ConfigurationError("FieldAliasIndex has no config store to refresh from")

        with self._lock:
            snapshot = _build_snapshot(self.store.load_active_field_configs())
            self._snapshot = snapshot

        counts = {rt.value: len(fs) for rt, fs in snapshot.fields.items()}
        logger.info(f"Field alias index rebuilt: {counts}")

    def match(self, label: Any, record_type: Union[RecordType, str]) -> Optional[str]:
        """Canonical field name for a header label, or None"""
        normalized = normalize_label(label)
        if not normalized:
            return None
        labels = self._snapshot.labels.get(RecordType(record_type), {})
        return labels.get(normalized)

    def match_any(self, label: Any) -> bool:
        """True if the label names a field of any record type"""
        normalized = normalize_label(label)
        if not normalized:
            return False
        return any(normalized in labels for labels in self._snapshot.labels.values())

    def match_headers(self, headers: Sequence[Any], record_type: Union[RecordType, str]) -> List[str]:
        """One field name per matching header cell, in header order"""
        matched = []
        for header in headers:
            name = self.match(header, record_type)
            if name is not None:
                matched.append(name)
        return matched

    def build_column_mapping(self, headers: Sequence[Any],
                             record_type: Union[RecordType, str]) -> Dict[str, int]:
        """Map field name to column index; a later duplicate column wins"""
        mapping = {}
        for index, header in enumerate(headers):
            name = self.match(header, record_type)
            if name is not None:
                if name in mapping:
                    logger.debug(f"Field '{name}' appears in columns {mapping[name]} and {index}, using {index}")
                mapping[name] = index
        return mapping

    def fields(self, record_type: Union[RecordType, str]) -> List[FieldConfig]:
        return list(self._snapshot.fields.get(RecordType(record_type), []))

    def core_fields(self, record_type: Union[RecordType, str]) -> List[FieldConfig]:
        return [f for f in self.fields(record_type) if f.is_core]

    def required_fields(self, record_type: Union[RecordType, str]) -> List[FieldConfig]:
        return [f for f in self.fields(record_type) if f.required]

    def get(self, name: str, record_type: Union[RecordType, str]) -> Optional[FieldConfig]:
        for config in self._snapshot.fields.get(RecordType(record_type), []):
            if config.name == name:
                return config
        return None

    def available_record_types(self) -> List[str]:
        return [rt.value for rt in self._snapshot.record_types]

    def validate_field_names(self, names: Iterable[str]):
        """
        Raises:
            ConfigurationError: If a name is not a field of any record type
        """
        snapshot = self._snapshot
        known = {f.name for fields in snapshot.fields.values() for f in fields}
        unknown = [name for name in names if name not in known]
        if unknown:
            raise ConfigurationError(f"Unknown field names: {', '.join(unknown)}")
