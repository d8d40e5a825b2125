"""
Shared fixtures: a seeded temporary database and a workbook writer.
"""

import tempfile
from pathlib import Path

import openpyxl
import pytest

from services.database import Database
from services.schema import create_schema
from services.seed_data import seed_defaults

CONTRACT_HEADER = ["合同编号", "合同名称", "甲方", "乙方", "合同金额", "签订日期"]
PROCUREMENT_HEADER = ["招采编号", "采购名称", "采购人", "预算金额（元）", "开标日期"]


@pytest.fixture
def temp_db():
    """Create temporary database path for testing"""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        db_path = f.name

    yield db_path

    # Cleanup
    Path(db_path).unlink(missing_ok=True)


@pytest.fixture
def db(temp_db):
    """Database with schema and default catalog"""
    database = Database(temp_db)
    create_schema(database)
    seed_defaults(database)
    yield database
    database.close()


@pytest.fixture
def write_workbook(tmp_path):
    """Return a function writing {sheet name: rows} to an .xlsx file"""
    def _write(sheets, name="import.xlsx"):
        workbook = openpyxl.Workbook()
        workbook.remove(workbook.active)
        for sheet_name, rows in sheets.items():
            worksheet = workbook.create_sheet(title=sheet_name)
            for row in rows:
                worksheet.append(row)
        path = tmp_path / name
        workbook.save(path)
        return str(path)

    return _write


@pytest.fixture
def contract_rows():
    """Header plus three contract rows"""
    return [
        CONTRACT_HEADER,
        ["HT-2024-001", "办公楼改造工程", "城市建设集团", "华东建筑公司", "¥1,234.50元", "2024/01/05"],
        ["HT-2024-002", "道路维护服务", "城市建设集团", "路桥养护公司", "100000", "2024年3月8日"],
        ["HT-2024-003", "设备采购合同", "医院", "医疗器械公司", "56,000", "2024-06-30"],
    ]
