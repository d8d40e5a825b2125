"""
Read access to the field catalog and cleaning rules stored in the database.
"""

from typing import List, Optional

from loguru import logger

from models.cleaning_rule import CleaningRule
from models.field_config import FieldConfig, RecordType

from .database import Database
from .errors import RuleConfigError


class ConfigStore:
    """Loads active field configs and cleaning rules"""

    def __init__(self, db: Database):
        self.db = db

    def load_active_field_configs(self, record_type: Optional[RecordType] = None) -> List[FieldConfig]:
        """
        Load active field configs ordered by record type, display order and id.

        Args:
            record_type: Restrict to one record type
        """
        sql = "SELECT * FROM fieldConfigs WHERE isActive = 1"
        params = []
        if record_type is not None:
            sql += " AND fieldType = ?"
            params.append(RecordType(record_type).value)
        sql += " ORDER BY fieldType, displayOrder, id"

        configs = [FieldConfig.from_row(dict(row)) for row in self.db.execute(sql, params)]
        logger.debug(f"Loaded {len(configs)} field configs")
        return configs

    def load_active_cleaning_rules(self) -> List[CleaningRule]:
        """
        Load active cleaning rules ordered by priority and id.

        A rule whose stored config does not validate is logged and skipped.
        """
        rules = []
        rows = self.db.execute(
            "SELECT * FROM dataCleaningRules WHERE isActive = 1 ORDER BY priority, id"
        )
        for row in rows:
            row = dict(row)
            try:
                rules.append(CleaningRule.from_row(row))
            except RuleConfigError as e:
                logger.error(
                    f"Skipping cleaning rule {row.get('id')} for {row.get('fieldType')}.{row.get('fieldName')}: {e}"
                )
        logger.debug(f"Loaded {len(rules)} cleaning rules")
        return rules

    def load_system_config(self, key: str, default: Optional[str] = None) -> Optional[str]:
        rows = self.db.execute("SELECT configValue FROM systemConfigs WHERE configKey = ?", (key,))
        return rows[0]['configValue'] if rows else default
