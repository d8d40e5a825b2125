"""
Header row detection for worksheets with title or blank rows above the header.
"""

from typing import Any, List, Sequence

from config.settings import HEADER_SCAN_ROWS

from .field_alias_index import FieldAliasIndex


class HeaderRowDetector:
    """Picks the row among the first few that looks most like a header"""

    def __init__(self, index: FieldAliasIndex, scan_rows: int = HEADER_SCAN_ROWS):
        if scan_rows < 1:
            raise ValueError(f"scan_rows must be at least 1, got {scan_rows}")
        self.index = index
        self.scan_rows = scan_rows

    def score_rows(self, rows: Sequence[Sequence[Any]]) -> List[int]:
        """Count of cells matching any configured field, for each scanned row"""
        return [
            sum(1 for cell in row if self.index.match_any(cell))
            for row in rows[:self.scan_rows]
        ]

    def detect(self, rows: Sequence[Sequence[Any]]) -> int:
        """
        Index of the best-scoring row; ties go to the earliest row and an
        all-zero scan returns 0.
        """
        best_index, best_score = 0, 0
        for index, score in enumerate(self.score_rows(rows)):
            if score > best_score:
                best_index, best_score = index, score
        return best_index
