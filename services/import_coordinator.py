"""
Import coordinator: parses workbooks, classifies sheets and persists
cleaned rows on a background thread while publishing progress.

Errors stay inside the unit of work they belong to. A bad file is
recorded and the next file is parsed; a bad row is recorded and the next
row is inserted. Only configuration loading failures fail a whole job.
"""

import json
import sqlite3
import threading
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from loguru import logger

from config.settings import MAX_JOB_ERRORS
from models.field_config import FieldConfig, RecordType
from models.import_job import ImportJob, ImportSettings, ImportStatus, IssueScope
from models.worksheet_info import RecognitionStatus, WorksheetInfo

from .cleaning_engine import CleaningLog, CleaningRuleEngine, STATUS_ERROR, normalize_text
from .config_store import ConfigStore
from .database import Database
from .errors import ConfigurationError, FileError, JobError, RowPersistError, SheetError
from .field_alias_index import FieldAliasIndex
from .progress_registry import ProgressRegistry
from .project_linker import ProjectLinker
from .sheet_classifier import SheetClassifier
from .workbook_reader import WorkbookFile, WorkbookReader, is_blank

PARSE_WEIGHT = 30
IMPORT_WEIGHT = 70

PROVENANCE_COLUMNS = [
    'extendedFields', 'filePath', 'fileName', 'fileSize', 'fileHash', 'sheetName',
    'status', 'totalRows', 'processedRows', 'errorRows', 'matchScore',
    'isVerified', 'hasErrors', 'errorInfo', 'processingLog', 'cleaningLog',
]


@dataclass
class _JobContext:
    job: ImportJob
    settings: ImportSettings
    cleaning_enabled: bool = True


@dataclass
class _SheetPlan:
    """Everything fixed for the rows of one recognized sheet"""
    workbook: WorkbookFile
    info: WorksheetInfo
    column_mapping: Dict[str, int]
    core_fields: List[FieldConfig]
    extended_fields: List[FieldConfig]
    match_score: float
    insert_sql: str


def _storage_value(value: Any) -> Any:
    """Convert a cleaned value to something sqlite and json both accept"""
    if value is None or isinstance(value, (str, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class ImportCoordinator:
    """Runs import jobs and answers progress queries"""

    def __init__(self, db: Database,
                 registry: Optional[ProgressRegistry] = None,
                 store: Optional[ConfigStore] = None,
                 index: Optional[FieldAliasIndex] = None,
                 engine: Optional[CleaningRuleEngine] = None,
                 linker: Optional[ProjectLinker] = None,
                 reader: Optional[WorkbookReader] = None,
                 max_job_errors: int = MAX_JOB_ERRORS):
        self.db = db
        self.store = store or ConfigStore(db)
        self.index = index or FieldAliasIndex(self.store)
        self.engine = engine or CleaningRuleEngine(self.store)
        self.linker = linker or ProjectLinker(db, self.index)
        self.classifier = SheetClassifier(self.index)
        self.reader = reader or WorkbookReader()
        self.registry = registry or ProgressRegistry()
        self.max_job_errors = max_job_errors
        self._threads: Dict[str, threading.Thread] = {}

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    def start_import(self, file_paths: Sequence[Union[str, Path]],
                     settings: Union[ImportSettings, Dict[str, Any], None] = None) -> str:
        """
        Register a pending job and start its worker thread.

        Only the argument shape is checked here; file problems surface as
        job issues.

        Returns:
            The new import id

        Raises:
            ValueError: If file_paths is not a non-empty list of paths or
                settings is not ImportSettings or a dict
        """
        if isinstance(file_paths, (str, bytes)) or not isinstance(file_paths, (list, tuple)) or not file_paths:
            raise ValueError("file_paths must be a non-empty list of file paths")
        if not all(isinstance(p, (str, Path)) for p in file_paths):
            raise ValueError("file_paths must contain only strings")

        if settings is None:
            settings = ImportSettings()
        elif isinstance(settings, dict):
            settings = ImportSettings.from_dict(settings)
        elif not isinstance(settings, ImportSettings):
            raise ValueError(f"settings must be ImportSettings or a dict, got {type(settings).__name__}")

        job = ImportJob(file_paths=[str(p) for p in file_paths], settings=settings)
        self.registry.register(job)

        thread = threading.Thread(
            target=self._run_import,
            args=(job,),
            name=f"import-{job.import_id[:8]}",
            daemon=True
        )
        self._threads[job.import_id] = thread
        thread.start()

        logger.info(f"Started import {job.import_id} for {len(job.file_paths)} files")
        return job.import_id

    def join(self, import_id: str, timeout: Optional[float] = None) -> bool:
        """Wait for a job's worker; True if it has finished"""
        thread = self._threads.get(import_id)
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def parse_file(self, file_path: Union[str, Path],
                   settings: Optional[ImportSettings] = None) -> List[WorksheetInfo]:
        """
        Decode a workbook and classify each non-empty sheet.

        Raises:
            FileError: If the file fails validation or cannot be decoded
        """
        _, sheets = self._parse_workbook(file_path, settings or ImportSettings())
        return sheets

    def get_progress(self, import_id: str) -> Optional[ImportJob]:
        return self.registry.get(import_id)

    def list_progress(self) -> List[ImportJob]:
        return self.registry.list()

    def clear_progress(self, import_id: str) -> bool:
        return self.registry.clear(import_id)

    def clear_progress_by_file(self, file_path: Union[str, Path]) -> int:
        return self.registry.clear_by_file(str(file_path))

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def _parse_workbook(self, file_path: Union[str, Path],
                        settings: ImportSettings) -> Tuple[WorkbookFile, List[WorksheetInfo]]:
        workbook = self.reader.read(file_path)
        sheets = []
        for sheet_name, rows in workbook.sheets.items():
            if not rows:
                logger.debug(f"Skipping empty sheet '{sheet_name}' in {workbook.file_name}")
                continue
            try:
                info = self.classifier.classify(str(file_path), sheet_name, rows, settings)
            except Exception as e:
                logger.error(f"Failed to parse sheet '{sheet_name}' in {workbook.file_name}: {e}")
                info = WorksheetInfo(
                    sheet_id=str(uuid.uuid4()),
                    file_path=str(file_path),
                    sheet_name=sheet_name,
                    record_type=RecordType.UNKNOWN,
                    header_row_index=0,
                    total_rows=len(rows),
                    recognition_status=RecognitionStatus.UNRECOGNIZED,
                    failure_reason=f"Sheet parse failed: {e}",
                    raw_rows=rows,
                )
            sheets.append(info)
        return workbook, sheets

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _run_import(self, job: ImportJob):
        # the worker keeps its own reference, so clearing the registry entry
        # only hides the job from callers
        import_id = job.import_id
        with self.registry.hold(job):
            job.status = ImportStatus.PROCESSING
            job.started_at = datetime.now()
            job.current_step = "Loading field configuration"
            file_paths = list(job.file_paths)
            context = _JobContext(job, job.settings)

        try:
            context.cleaning_enabled = self._refresh_configuration()
            parsed = self._parse_phase(context, file_paths)
            self._import_phase(context, parsed)

            with self.registry.hold(job):
                job.status = ImportStatus.COMPLETED
                job.progress_percent = 100
                job.current_step = "Import completed"
                job.completed_at = datetime.now()
                logger.info(
                    f"Import {import_id} completed: {job.processed_rows} rows imported, "
                    f"{job.error_rows} error rows"
                )

        except Exception as e:
            logger.error(f"Import {import_id} failed: {e}")
            with self.registry.hold(job):
                job.status = ImportStatus.FAILED
                job.current_step = "Import failed"
                job.completed_at = datetime.now()
                job.add_issue(IssueScope.FILE, f"Import failed: {e}", limit=self.max_job_errors)

    def _refresh_configuration(self) -> bool:
        """
        Reload fields and rules; returns whether rule cleaning is enabled.

        Raises:
            JobError: If the catalog is inconsistent or the store is unreadable
        """
        try:
            self.index.refresh()
            self.engine.refresh()
            self.index.validate_field_names(self.linker.name_fields + self.linker.code_fields)
            enabled = self.store.load_system_config('cleaning.enabled', 'true')
        except (ConfigurationError, sqlite3.Error) as e:
            raise JobError(f"Cannot load import configuration: {e}") from e
        return str(enabled).strip().lower() != 'false'

    def _parse_phase(self, context: _JobContext,
                     file_paths: List[str]) -> List[Tuple[WorkbookFile, List[WorksheetInfo]]]:
        parsed = []
        total_files = len(file_paths)

        for position, file_path in enumerate(file_paths, start=1):
            with self.registry.hold(context.job) as job:
                job.current_step = f"Parsing {Path(file_path).name}"

            try:
                parsed.append(self._parse_workbook(file_path, context.settings))
            except FileError as e:
                logger.error(f"Skipping file {file_path}: {e}")
                with self.registry.hold(context.job) as job:
                    job.add_issue(IssueScope.FILE, str(e), {'file_path': e.file_path},
                                  limit=self.max_job_errors)

            with self.registry.hold(context.job) as job:
                job.processed_files = position
                job.progress_percent = round(position / total_files * PARSE_WEIGHT)

        return parsed

    def _import_phase(self, context: _JobContext,
                      parsed: List[Tuple[WorkbookFile, List[WorksheetInfo]]]):
        sheets = [(workbook, info) for workbook, infos in parsed for info in infos]

        with self.registry.hold(context.job) as job:
            job.total_sheets = len(sheets)
            job.total_rows = sum(info.data_rows for _, info in sheets)
            job.progress_percent = PARSE_WEIGHT
            job.current_step = "Importing records"

        for position, (workbook, info) in enumerate(sheets, start=1):
            with self.registry.hold(context.job) as job:
                job.current_step = f"Importing {workbook.file_name} / {info.sheet_name}"

            if info.is_recognized:
                self._import_sheet(context, workbook, info)
            else:
                with self.registry.hold(context.job) as job:
                    job.error_rows += info.data_rows
                    job.add_issue(
                        IssueScope.SHEET,
                        f"Sheet '{info.sheet_name}' in {workbook.file_name} not recognized: {info.failure_reason}",
                        {'file_path': info.file_path, 'sheet_name': info.sheet_name},
                        limit=self.max_job_errors
                    )

            with self.registry.hold(context.job) as job:
                job.processed_sheets = position
                job.progress_percent = PARSE_WEIGHT + round(position / len(sheets) * IMPORT_WEIGHT)

    # ------------------------------------------------------------------
    # Sheet and row persistence
    # ------------------------------------------------------------------

    def _plan_sheet(self, workbook: WorkbookFile, info: WorksheetInfo) -> _SheetPlan:
        """
        Raises:
            SheetError: If the destination table or a core column is missing
        """
        record_type = info.record_type
        table = record_type.table_name
        if not self.db.table_exists(table):
            raise SheetError(info.sheet_name, f"Table '{table}' does not exist")

        fields = self.index.fields(record_type)
        core_fields = [f for f in fields if f.is_core]
        existing = {row['name'] for row in self.db.execute(f'PRAGMA table_info("{table}")')}
        missing = [f.storage_column for f in core_fields if f.storage_column not in existing]
        if missing:
            raise SheetError(info.sheet_name, f"Table '{table}' has no column(s): {', '.join(missing)}")

        columns = ['projectId'] + [f.storage_column for f in core_fields] + PROVENANCE_COLUMNS
        quoted = ', '.join(f'"{column}"' for column in columns)
        placeholders = ', '.join('?' for _ in columns)
        insert_sql = f'INSERT INTO "{table}" ({quoted}) VALUES ({placeholders})'

        configured = len(fields)
        match_score = min(1.0, info.matched_field_count / configured) if configured else 0.0

        return _SheetPlan(
            workbook=workbook,
            info=info,
            column_mapping=self.index.build_column_mapping(info.header_row, record_type),
            core_fields=core_fields,
            extended_fields=[f for f in fields if not f.is_core],
            match_score=match_score,
            insert_sql=insert_sql,
        )

    def _import_sheet(self, context: _JobContext, workbook: WorkbookFile, info: WorksheetInfo):
        settings = context.settings
        counts = {'processed': 0, 'errors': 0}

        logger.info(f"Importing {info.data_rows} rows from sheet '{info.sheet_name}' as {info.record_type.value}")

        def _insert_rows(conn: Database):
            plan = self._plan_sheet(workbook, info)
            mapped_columns = list(plan.column_mapping.values())

            for position, raw_row in info.iter_data_rows():
                row = [
                    cell.strip() if settings.trim_whitespace and isinstance(cell, str) else cell
                    for cell in raw_row
                ]
                row_number = info.header_row_index + 1 + position

                if settings.skip_empty_rows and all(
                    is_blank(row[i]) for i in mapped_columns if i < len(row)
                ):
                    counts['processed'] += 1
                    with self.registry.hold(context.job) as job:
                        job.processed_rows += 1
                    continue

                try:
                    params, field_errors = self._build_row(context, plan, row, position, row_number)
                    conn.execute(plan.insert_sql, params)
                except Exception as e:
                    error = RowPersistError(row_number, str(e))
                    logger.error(f"Row {row_number} of sheet '{info.sheet_name}' failed: {error}")
                    counts['errors'] += 1
                    with self.registry.hold(context.job) as job:
                        job.error_rows += 1
                        job.add_issue(
                            IssueScope.ROW,
                            f"Row {row_number} of sheet '{info.sheet_name}' failed: {error}",
                            {'file_path': info.file_path, 'sheet_name': info.sheet_name, 'row': row_number},
                            limit=self.max_job_errors
                        )
                    continue

                counts['processed'] += 1
                with self.registry.hold(context.job) as job:
                    job.processed_rows += 1
                    for field_name, message in field_errors:
                        job.add_issue(
                            IssueScope.FIELD,
                            f"Row {row_number} field '{field_name}': {message}",
                            {'sheet_name': info.sheet_name, 'row': row_number, 'field': field_name},
                            limit=self.max_job_errors
                        )

        try:
            self.db.run_in_transaction(_insert_rows)
        except Exception as e:
            error = e if isinstance(e, SheetError) else SheetError(info.sheet_name, str(e))
            logger.error(f"Sheet '{info.sheet_name}' in {workbook.file_name} failed: {error}")
            # the transaction rolled back, so none of this sheet's rows were kept
            with self.registry.hold(context.job) as job:
                job.processed_rows -= counts['processed']
                job.error_rows += info.data_rows - counts['errors']
                job.add_issue(
                    IssueScope.SHEET,
                    f"Sheet '{info.sheet_name}' in {workbook.file_name} failed: {error}",
                    {'file_path': info.file_path, 'sheet_name': info.sheet_name},
                    limit=self.max_job_errors
                )

    def _clean_values(self, context: _JobContext, record_type: RecordType,
                      raw: Dict[str, Any]):
        if context.cleaning_enabled:
            cleaned, cleaning_log = self.engine.clean_record(raw, record_type)
        else:
            cleaned, cleaning_log = dict(raw), CleaningLog(table_name=record_type.table_name)

        # fields without rules get the default normalization
        for name, value in cleaned.items():
            if context.cleaning_enabled and self.engine.rules_for(record_type, name):
                continue
            if context.settings.trim_whitespace:
                cleaned[name] = normalize_text(value)
        return cleaned, cleaning_log

    def _build_row(self, context: _JobContext, plan: _SheetPlan, row: Sequence[Any],
                   position: int, row_number: int) -> Tuple[tuple, List[Tuple[str, str]]]:
        """Parameters for the sheet's INSERT plus (field, message) pairs for field errors"""
        info = plan.info
        record_type = info.record_type

        raw = {}
        for config in plan.core_fields + plan.extended_fields:
            column = plan.column_mapping.get(config.name)
            if column is None:
                continue
            value = row[column] if column < len(row) else None
            raw[config.name] = None if is_blank(value) else value

        cleaned, cleaning_log = self._clean_values(context, record_type, raw)

        field_errors = [
            (result.field_name, result.message)
            for result in cleaning_log.results if result.status == STATUS_ERROR
        ]
        error_info = [f"{name}: {message}" for name, message in field_errors]

        if context.settings.validate_data:
            for config in plan.core_fields:
                if config.required and cleaned.get(config.name) in (None, ""):
                    error_info.append(f"Required field '{config.label}' ({config.name}) is empty")

        extended = {
            config.name: _storage_value(cleaned[config.name])
            for config in plan.extended_fields if config.name in cleaned
        }
        processing_log = {
            'importId': context.job.import_id,
            'sheetId': info.sheet_id,
            'sheetName': info.sheet_name,
            'rowNumber': row_number,
            'timestamp': datetime.now().isoformat(),
        }

        params = [self.linker.resolve(row, plan.column_mapping)]
        params.extend(_storage_value(cleaned.get(config.name)) for config in plan.core_fields)
        params.extend([
            json.dumps(extended, ensure_ascii=False),
            info.file_path,
            plan.workbook.file_name,
            plan.workbook.file_size,
            plan.workbook.file_hash,
            info.sheet_name,
            'completed',
            info.data_rows,
            position,
            len(field_errors),
            plan.match_score,
            0,
            1 if error_info else 0,
            json.dumps(error_info, ensure_ascii=False) if error_info else None,
            json.dumps(processing_log, ensure_ascii=False),
            json.dumps(cleaning_log.to_dict(), ensure_ascii=False, default=str),
        ])

        logger.debug(f"Prepared row {row_number} of sheet '{info.sheet_name}'")
        return tuple(params), field_errors
