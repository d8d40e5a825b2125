"""
Best-effort association of imported rows with existing projects.
"""

import sqlite3
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from config.settings import PROJECT_CODE_FIELDS, PROJECT_NAME_FIELDS
from models.field_config import parse_aliases

from .database import Database
from .field_alias_index import FieldAliasIndex
from .workbook_reader import is_blank


class ProjectLinker:
    """
    Resolves a project id from the project name/code columns of a row.

    Exact matches (code, name, alias) win over substring matches; only
    active projects are considered and the lowest id wins among equals.
    """

    def __init__(self, db: Database, index: FieldAliasIndex,
                 name_fields: Optional[Sequence[str]] = None,
                 code_fields: Optional[Sequence[str]] = None):
        self.db = db
        self.name_fields = list(name_fields if name_fields is not None else PROJECT_NAME_FIELDS)
        self.code_fields = list(code_fields if code_fields is not None else PROJECT_CODE_FIELDS)
        index.validate_field_names(self.name_fields + self.code_fields)

    def resolve(self, row: Sequence[Any], column_mapping: Dict[str, int]) -> Optional[int]:
        """Project id for the row, or None when nothing matches"""
        name = self._first_value(row, column_mapping, self.name_fields)
        code = self._first_value(row, column_mapping, self.code_fields)
        if name is None and code is None:
            return None

        try:
            projects = self._active_projects()
        except sqlite3.Error as e:
            logger.warning(f"Project lookup failed: {e}")
            return None

        project_id = self._exact_match(projects, name, code)
        if project_id is None and name is not None:
            project_id = self._substring_match(projects, name)

        if project_id is None:
            logger.debug(f"No project matches name={name!r} code={code!r}")
        return project_id

    @staticmethod
    def _first_value(row: Sequence[Any], column_mapping: Dict[str, int],
                     field_names: List[str]) -> Optional[str]:
        for field_name in field_names:
            index = column_mapping.get(field_name)
            if index is None or index >= len(row):
                continue
            value = row[index]
            if not is_blank(value):
                return str(value).strip()
        return None

    def _active_projects(self) -> List[Dict[str, Any]]:
        rows = self.db.execute(
            "SELECT id, projectCode, projectName, projectAlias FROM projects "
            "WHERE status = 'active' ORDER BY id"
        )
        return [dict(row) for row in rows]

    @staticmethod
    def _exact_match(projects, name: Optional[str], code: Optional[str]) -> Optional[int]:
        for project in projects:
            if code is not None and project['projectCode'] == code:
                return project['id']
            if name is not None:
                if project['projectName'] == name or name in parse_aliases(project['projectAlias']):
                    return project['id']
        return None

    @staticmethod
    def _substring_match(projects, name: str) -> Optional[int]:
        for project in projects:
            project_name = project['projectName'] or ''
            if name in project_name or (project_name and project_name in name):
                return project['id']
            if any(name in alias for alias in parse_aliases(project['projectAlias'])):
                return project['id']
        return None
