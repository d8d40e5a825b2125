"""
Tests for ProgressRegistry.
"""

from datetime import datetime, timedelta

import pytest

from models.import_job import ImportJob, ImportStatus
from services.progress_registry import ProgressRegistry


@pytest.fixture
def registry():
    return ProgressRegistry()


class TestProgressRegistry:
    """Test job registration, snapshots and clearing"""

    def test_register_and_get(self, registry):
        job = ImportJob(['a.xlsx'])
        registry.register(job)

        snapshot = registry.get(job.import_id)
        assert snapshot.import_id == job.import_id
        assert snapshot.status is ImportStatus.PENDING
        assert registry.get('missing') is None

    def test_duplicate_register_rejected(self, registry):
        job = ImportJob(['a.xlsx'])
        registry.register(job)
        with pytest.raises(ValueError):
            registry.register(job)

    def test_get_returns_snapshot(self, registry):
        job = ImportJob(['a.xlsx'])
        registry.register(job)

        snapshot = registry.get(job.import_id)
        snapshot.processed_rows = 99

        assert registry.get(job.import_id).processed_rows == 0

    def test_update_mutates_live_job(self, registry):
        job = ImportJob(['a.xlsx'])
        registry.register(job)

        with registry.update(job.import_id) as live:
            live.status = ImportStatus.PROCESSING
            live.processed_rows += 3

        snapshot = registry.get(job.import_id)
        assert snapshot.status is ImportStatus.PROCESSING
        assert snapshot.processed_rows == 3

    def test_update_missing_job(self, registry):
        with pytest.raises(KeyError):
            with registry.update('missing'):
                pass

    def test_list_in_creation_order(self, registry):
        now = datetime.now()
        later = ImportJob(['b.xlsx'], created_at=now + timedelta(seconds=1))
        earlier = ImportJob(['a.xlsx'], created_at=now)
        registry.register(later)
        registry.register(earlier)

        assert [job.import_id for job in registry.list()] == [earlier.import_id, later.import_id]

    def test_clear(self, registry):
        job = ImportJob(['a.xlsx'])
        registry.register(job)

        assert registry.clear(job.import_id) is True
        assert registry.clear(job.import_id) is False
        assert registry.get(job.import_id) is None

    def test_clear_by_file_only_removes_matching_jobs(self, registry):
        first = ImportJob(['/data/a.xlsx', '/data/b.xlsx'])
        second = ImportJob(['/data/b.xlsx'])
        third = ImportJob(['/data/c.xlsx'])
        for job in (first, second, third):
            registry.register(job)

        assert registry.clear_by_file('/data//b.xlsx') == 2
        assert [job.import_id for job in registry.list()] == [third.import_id]
        assert registry.clear_by_file('/data/missing.xlsx') == 0

    def test_hold_outlives_clear(self, registry):
        job = ImportJob(['a.xlsx'])
        registry.register(job)
        registry.clear(job.import_id)

        with registry.hold(job) as live:
            live.processed_rows = 5

        assert job.processed_rows == 5
        assert registry.get(job.import_id) is None
