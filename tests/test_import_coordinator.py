"""
Tests for ImportCoordinator: parsing, background imports and progress.
"""

import json

import pytest

from models.field_config import RecordType
from models.import_job import ImportSettings, ImportStatus, IssueScope
from services.errors import SheetError
from services.import_coordinator import ImportCoordinator

from conftest import CONTRACT_HEADER, PROCUREMENT_HEADER


@pytest.fixture
def coordinator(db):
    return ImportCoordinator(db)


def run_import(coordinator, paths, settings=None):
    """Start an import, wait for its worker and return the final snapshot"""
    import_id = coordinator.start_import(paths, settings)
    assert coordinator.join(import_id, timeout=60)
    return coordinator.get_progress(import_id)


def contracts(db):
    return db.execute("SELECT * FROM contracts ORDER BY id")


class TestParseFile:
    """Test synchronous workbook parsing"""

    def test_contract_sheet(self, coordinator, write_workbook, contract_rows):
        path = write_workbook({'合同台账': contract_rows})
        sheets = coordinator.parse_file(path)

        assert len(sheets) == 1
        assert sheets[0].record_type is RecordType.CONTRACT
        assert sheets[0].is_recognized
        assert sheets[0].data_rows == 3

    def test_header_below_title_row(self, coordinator, write_workbook, contract_rows):
        path = write_workbook({'Sheet1': [["2024年度合同台账"]] + contract_rows})
        info = coordinator.parse_file(path)[0]

        assert info.header_row_index == 1
        assert info.data_rows == 3

    def test_empty_sheet_skipped(self, coordinator, write_workbook, contract_rows):
        path = write_workbook({'合同': contract_rows, 'Empty': []})
        assert [info.sheet_name for info in coordinator.parse_file(path)] == ['合同']

    def test_sheet_parse_failure_is_isolated(self, coordinator, write_workbook, contract_rows, monkeypatch):
        original = coordinator.classifier.classify

        def classify(file_path, sheet_name, rows, settings=None):
            if sheet_name == 'Broken':
                raise RuntimeError("merged cells")
            return original(file_path, sheet_name, rows, settings)

        monkeypatch.setattr(coordinator.classifier, 'classify', classify)
        path = write_workbook({'Broken': contract_rows, '合同': contract_rows})
        broken, good = coordinator.parse_file(path)

        assert not broken.is_recognized
        assert broken.failure_reason == "Sheet parse failed: merged cells"
        assert good.is_recognized


class TestStartImport:
    """Test argument checks"""

    @pytest.mark.parametrize("paths", ["a.xlsx", [], [1, 2], None])
    def test_bad_file_paths(self, coordinator, paths):
        with pytest.raises(ValueError):
            coordinator.start_import(paths)

    def test_bad_settings(self, coordinator):
        with pytest.raises(ValueError):
            coordinator.start_import(['a.xlsx'], settings=5)
        with pytest.raises(ValueError):
            coordinator.start_import(['a.xlsx'], settings={'minMatchFields': 0})
        assert coordinator.list_progress() == []


class TestImport:
    """Test end-to-end imports"""

    def test_contract_import(self, db, coordinator, write_workbook, contract_rows):
        path = write_workbook({'合同': contract_rows})
        job = run_import(coordinator, [path])

        assert job.status is ImportStatus.COMPLETED
        assert job.progress_percent == 100
        assert job.total_rows == 3
        assert job.processed_rows == 3
        assert job.error_rows == 0
        assert job.processed_files == 1
        assert job.processed_sheets == 1

        rows = contracts(db)
        assert len(rows) == 3
        first = rows[0]
        assert first['contractNumber'] == "HT-2024-001"
        assert first['contractAmount'] == 1234.5
        assert first['signDate'] == "2024-01-05"
        assert first['fileName'] == 'import.xlsx'
        assert first['sheetName'] == '合同'
        assert first['status'] == 'completed'
        assert first['processedRows'] == 1
        assert first['totalRows'] == 3
        assert rows[1]['signDate'] == "2024-03-08"
        assert rows[1]['contractAmount'] == 100000
        assert rows[2]['contractAmount'] == 56000

        processing_log = json.loads(first['processingLog'])
        assert processing_log['importId'] == job.import_id
        assert processing_log['rowNumber'] == 2

        cleaning_log = json.loads(first['cleaningLog'])
        assert cleaning_log['tableName'] == 'contracts'

    def test_required_fields_recorded_in_error_info(self, db, coordinator, write_workbook):
        path = write_workbook({'合同': [CONTRACT_HEADER, ["HT-1", "工程", "", "乙方公司", "100", "2024-01-01"]]})
        job = run_import(coordinator, [path])

        assert job.processed_rows == 1
        row = contracts(db)[0]
        assert row['hasErrors'] == 1
        assert "partyA" in json.loads(row['errorInfo'])[0]

    def test_procurement_import(self, db, coordinator, write_workbook):
        path = write_workbook({'招采': [PROCUREMENT_HEADER, ["ZC-1", "设备采购", "医院", "¥50,000", "2024/2/1"]]})
        job = run_import(coordinator, [path])

        assert job.processed_rows == 1
        row = db.execute("SELECT * FROM procurements")[0]
        assert row['budgetAmount'] == 50000
        assert row['bidOpeningDate'] == "2024-02-01"

    def test_extended_fields_and_project_link(self, db, coordinator, write_workbook):
        header = CONTRACT_HEADER + ["所属项目", "备注"]
        path = write_workbook({'合同': [header, ["HT-1", "OA运维", "甲", "乙", "10", "2024-01-01", "OA系统", "首年"]]})
        run_import(coordinator, [path])

        row = contracts(db)[0]
        project = db.execute("SELECT id FROM projects WHERE projectCode = 'PROJ002'")[0]
        assert row['projectId'] == project['id']
        assert json.loads(row['extendedFields']) == {'projectName': "OA系统", 'remarks': "首年"}

    def test_unrecognized_sheet_counts_error_rows(self, coordinator, write_workbook, contract_rows):
        path = write_workbook({
            '合同': contract_rows,
            '通讯录': [["姓名", "电话"], ["张三", "123"], ["李四", "456"]],
        })
        job = run_import(coordinator, [path])

        assert job.status is ImportStatus.COMPLETED
        assert job.processed_rows == 3
        assert job.error_rows == 2
        sheet_issues = [issue for issue in job.errors if issue.scope is IssueScope.SHEET]
        assert len(sheet_issues) == 1
        assert "通讯录" in sheet_issues[0].message

    def test_row_failure_does_not_stop_sheet(self, db, coordinator, write_workbook, contract_rows):
        contract_rows[2][4] = "-5"
        path = write_workbook({'合同': contract_rows})
        job = run_import(coordinator, [path])

        assert job.status is ImportStatus.COMPLETED
        assert job.processed_rows == 2
        assert job.error_rows == 1
        assert [row['contractNumber'] for row in contracts(db)] == ["HT-2024-001", "HT-2024-003"]

        row_issues = [issue for issue in job.errors if issue.scope is IssueScope.ROW]
        assert len(row_issues) == 1
        assert row_issues[0].details['row'] == 3

    def test_failed_sheet_rolls_back(self, db, coordinator, write_workbook, contract_rows, monkeypatch):
        def fail(workbook, info):
            raise SheetError(info.sheet_name, "Table 'contracts' has no column(s): signDate")

        monkeypatch.setattr(coordinator, '_plan_sheet', fail)
        path = write_workbook({'合同': contract_rows})
        job = run_import(coordinator, [path])

        assert job.status is ImportStatus.COMPLETED
        assert job.processed_rows == 0
        assert job.error_rows == 3
        assert contracts(db) == []
        assert any(issue.scope is IssueScope.SHEET for issue in job.errors)

    def test_missing_file_recorded(self, coordinator, write_workbook, contract_rows, tmp_path):
        good = write_workbook({'合同': contract_rows})
        job = run_import(coordinator, [str(tmp_path / 'missing.xlsx'), good])

        assert job.status is ImportStatus.COMPLETED
        assert job.processed_files == 2
        assert job.processed_rows == 3
        assert job.errors[0].scope is IssueScope.FILE
        assert "missing.xlsx" in job.errors[0].message

    def test_settings_dict(self, coordinator, write_workbook, contract_rows):
        path = write_workbook({'合同': contract_rows})
        job = run_import(coordinator, [path], {'minMatchFields': 7})

        assert job.settings.min_match_fields == 7
        assert job.processed_rows == 0
        assert job.error_rows == 3

    def test_cleaning_disabled(self, db, coordinator, write_workbook, contract_rows):
        db.execute("UPDATE systemConfigs SET configValue = 'false' WHERE configKey = 'cleaning.enabled'")
        path = write_workbook({'合同': contract_rows})
        run_import(coordinator, [path])

        row = contracts(db)[0]
        assert row['contractAmount'] == "¥1,234.50元"
        assert row['signDate'] == "2024/01/05"

    def test_alias_collision_fails_job(self, db, coordinator, write_workbook, contract_rows):
        db.execute(
            """
            INSERT INTO fieldConfigs (fieldName, fieldAlias, fieldType, dataType, fieldCategory, displayOrder)
            VALUES ('buyer', '甲方', 'contract', 'text', 'extended', 200)
            """
        )
        path = write_workbook({'合同': contract_rows})
        job = run_import(coordinator, [path])

        assert job.status is ImportStatus.FAILED
        assert job.errors[-1].message.startswith("Import failed: Cannot load import configuration")
        assert "甲方" in job.errors[-1].message
        assert contracts(db) == []

    def test_issue_cap(self, db, write_workbook):
        coordinator = ImportCoordinator(db, max_job_errors=2)
        rows = [CONTRACT_HEADER] + [
            [f"HT-{i}", "工程", "甲", "乙", "-5", "2024-01-01"] for i in range(4)
        ]
        path = write_workbook({'合同': rows})
        job = run_import(coordinator, [path])

        assert job.error_rows == 4
        assert len(job.errors) == 3
        assert job.errors[-1].message == "Too many issues; 2 more not recorded"

    def test_concurrent_imports(self, db, coordinator, write_workbook, contract_rows):
        first_path = write_workbook({'合同': contract_rows}, name='first.xlsx')
        second_path = write_workbook({'合同': contract_rows}, name='second.xlsx')

        first = coordinator.start_import([first_path])
        second = coordinator.start_import([second_path])
        assert first != second
        assert coordinator.join(first, timeout=60)
        assert coordinator.join(second, timeout=60)

        for import_id in (first, second):
            job = coordinator.get_progress(import_id)
            assert job.status is ImportStatus.COMPLETED
            assert job.processed_rows == 3
        assert db.count_rows('contracts') == 6


class TestProgress:
    """Test progress queries and clearing"""

    def test_progress_lifecycle(self, coordinator, write_workbook, contract_rows):
        path = write_workbook({'合同': contract_rows})
        job = run_import(coordinator, [path], ImportSettings())

        assert [j.import_id for j in coordinator.list_progress()] == [job.import_id]
        assert job.started_at is not None
        assert job.completed_at >= job.started_at

        assert coordinator.clear_progress(job.import_id) is True
        assert coordinator.get_progress(job.import_id) is None

    def test_clear_progress_by_file(self, coordinator, write_workbook, contract_rows):
        first = write_workbook({'合同': contract_rows}, name='first.xlsx')
        second = write_workbook({'合同': contract_rows}, name='second.xlsx')
        kept = run_import(coordinator, [second])
        run_import(coordinator, [first])
        run_import(coordinator, [first, second])

        assert coordinator.clear_progress_by_file(first) == 2
        assert [job.import_id for job in coordinator.list_progress()] == [kept.import_id]

    def test_unknown_import(self, coordinator):
        assert coordinator.get_progress('missing') is None
        assert coordinator.clear_progress('missing') is False

    def test_clearing_running_job_keeps_importing(self, db, coordinator, write_workbook,
                                                  contract_rows, monkeypatch):
        """Discarding the progress record mid-sheet does not cancel the job"""
        original = coordinator.linker.resolve
        cleared = []

        def resolve(row, column_mapping):
            if not cleared:
                cleared.extend(coordinator.clear_progress(job.import_id) for job in coordinator.list_progress())
            return original(row, column_mapping)

        monkeypatch.setattr(coordinator.linker, 'resolve', resolve)
        path = write_workbook({'合同': contract_rows})
        import_id = coordinator.start_import([path])

        assert coordinator.join(import_id, timeout=60)
        assert cleared == [True]
        assert coordinator.get_progress(import_id) is None
        assert db.count_rows('contracts') == 3

    def test_clear_by_file_while_running(self, db, coordinator, write_workbook, contract_rows, monkeypatch):
        path = write_workbook({'合同': contract_rows})
        other = write_workbook({'合同': contract_rows}, name='other.xlsx')
        kept = run_import(coordinator, [other])

        original = coordinator.linker.resolve
        cleared = []

        def resolve(row, column_mapping):
            if not cleared:
                cleared.append(coordinator.clear_progress_by_file(path))
            return original(row, column_mapping)

        monkeypatch.setattr(coordinator.linker, 'resolve', resolve)
        import_id = coordinator.start_import([path])

        assert coordinator.join(import_id, timeout=60)
        assert cleared == [1]
        assert [job.import_id for job in coordinator.list_progress()] == [kept.import_id]
        assert db.count_rows('contracts') == 6
