"""
Validation and decoding of spreadsheet files into plain row lists.
"""

import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd
from loguru import logger

from config.settings import ALLOWED_EXTENSIONS, MAX_FILE_SIZE_MB

from .errors import FileError

# pandas engine per extension
EXCEL_ENGINES = {
    '.xlsx': 'openpyxl',
    '.xls': 'xlrd',
}


def is_blank(value: Any) -> bool:
    """True for None, empty strings and whitespace-only strings"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


@dataclass
class WorkbookFile:
    """A decoded workbook and the facts recorded as provenance"""
    path: Path
    file_size: int
    file_hash: str
    sheets: Dict[str, List[List[Any]]] = field(default_factory=dict)

    @property
    def file_name(self) -> str:
        return self.path.name


class WorkbookReader:
    """Validates spreadsheet files and decodes every sheet with pandas"""

    def __init__(self, max_file_size_mb: int = MAX_FILE_SIZE_MB,
                 allowed_extensions: Optional[Sequence[str]] = None):
        self.max_file_size = max_file_size_mb * 1024 * 1024
        self.allowed_extensions = [ext.lower() for ext in (allowed_extensions or ALLOWED_EXTENSIONS)]

    def validate_file(self, file_path: Union[str, Path]) -> Path:
        """
        Validate a file for import.

        Raises:
            FileError: If the file is missing, not a regular file, has a
                disallowed extension or exceeds the size limit
        """
        path = Path(file_path)

        if not path.exists():
            raise FileError(file_path, f"File not found: {path}")

        if not path.is_file():
            raise FileError(file_path, f"Path is not a file: {path}")

        extension = path.suffix.lower()
        if extension not in self.allowed_extensions or extension not in EXCEL_ENGINES:
            raise FileError(
                file_path,
                f"Unsupported file type '{extension}'. Allowed: {', '.join(self.allowed_extensions)}"
            )

        file_size = path.stat().st_size
        if file_size > self.max_file_size:
            raise FileError(
                file_path,
                f"File size ({file_size} bytes) exceeds maximum allowed size ({self.max_file_size} bytes)"
            )

        return path

    @staticmethod
    def file_hash(path: Union[str, Path]) -> str:
        """SHA-256 of the file bytes"""
        digest = hashlib.sha256()
        with open(path, 'rb') as f:
            for chunk in iter(lambda: f.read(65536), b''):
                digest.update(chunk)
        return digest.hexdigest()

    def read(self, file_path: Union[str, Path]) -> WorkbookFile:
        """
        Validate and decode a workbook.

        Returns:
            WorkbookFile whose sheets map sheet name to its non-blank rows

        Raises:
            FileError: If validation fails or the workbook cannot be decoded
        """
        path = self.validate_file(file_path)
        engine = EXCEL_ENGINES[path.suffix.lower()]

        try:
            frames = pd.read_excel(path, sheet_name=None, header=None, dtype=object, engine=engine)
        except Exception as e:
            logger.error(f"Failed to decode {path}: {e}")
            raise FileError(file_path, f"Cannot read workbook {path.name}: {e}")

        workbook = WorkbookFile(
            path=path,
            file_size=path.stat().st_size,
            file_hash=self.file_hash(path),
        )
        for sheet_name, frame in frames.items():
            workbook.sheets[str(sheet_name)] = self.frame_to_rows(frame)

        logger.info(f"Read {len(workbook.sheets)} sheets from {path.name}")
        return workbook

    @staticmethod
    def frame_to_rows(frame: pd.DataFrame) -> List[List[Any]]:
        """
        Convert a headerless DataFrame to row lists.

        NaN becomes "", pandas timestamps become datetime and fully blank
        rows are dropped.
        """
        rows = []
        for record in frame.itertuples(index=False, name=None):
            row = [_to_cell(value) for value in record]
            if all(is_blank(value) for value in row):
                continue
            rows.append(row)
        return rows


def _to_cell(value: Any) -> Any:
    # NaN, NaT and None all read as empty cells
    if value is None or (pd.api.types.is_scalar(value) and pd.isna(value)):
        return ""
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value
