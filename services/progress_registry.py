"""
In-memory registry of import jobs, polled by callers for progress.
"""

import copy
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from loguru import logger

from models.import_job import ImportJob


class ProgressRegistry:
    """Lock-guarded map from import id to ImportJob; entries live until cleared"""

    def __init__(self):
        self._jobs: Dict[str, ImportJob] = {}
        self.job_lock = threading.Lock()

    def register(self, job: ImportJob):
        with self.job_lock:
            if job.import_id in self._jobs:
                raise ValueError(f"Import {job.import_id} is already registered")
            self._jobs[job.import_id] = job
        logger.debug(f"Registered import {job.import_id}")

    def get(self, import_id: str) -> Optional[ImportJob]:
        """Deep-copied snapshot of a job, or None"""
        with self.job_lock:
            job = self._jobs.get(import_id)
            return copy.deepcopy(job) if job is not None else None

    @contextmanager
    def update(self, import_id: str) -> Iterator[ImportJob]:
        """
        Yield the live job while holding the lock.

        Raises:
            KeyError: If the job was never registered or has been cleared
        """
        with self.job_lock:
            job = self._jobs.get(import_id)
            if job is None:
                raise KeyError(import_id)
            yield job

    @contextmanager
    def hold(self, job: ImportJob) -> Iterator[ImportJob]:
        """
        Yield a job the caller already owns while holding the lock.

        Works whether or not the job is still registered, so a worker keeps
        updating its job after a caller clears the entry.
        """
        with self.job_lock:
            yield job

    def list(self) -> List[ImportJob]:
        """Snapshots of every job in creation order"""
        with self.job_lock:
            jobs = sorted(self._jobs.values(), key=lambda j: j.created_at)
            return [copy.deepcopy(job) for job in jobs]

    def clear(self, import_id: str) -> bool:
        with self.job_lock:
            removed = self._jobs.pop(import_id, None) is not None
        if removed:
            logger.debug(f"Cleared import {import_id}")
        return removed

    def clear_by_file(self, file_path: str) -> int:
        """Remove jobs whose file list contains file_path; returns how many"""
        target = str(Path(file_path))
        with self.job_lock:
            matching = [
                import_id for import_id, job in self._jobs.items()
                if any(str(Path(p)) == target for p in job.file_paths)
            ]
            for import_id in matching:
                del self._jobs[import_id]
        logger.debug(f"Cleared {len(matching)} imports for {file_path}")
        return len(matching)
