"""
Configuration settings for the contract/procurement import pipeline
"""

import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent.parent

# File upload settings
MAX_FILE_SIZE_MB = int(os.getenv('MAX_FILE_SIZE_MB', '50'))
ALLOWED_EXTENSIONS = ['.xlsx', '.xls']

# Database settings
DATABASE_PATH = os.getenv('DATABASE_PATH', str(BASE_DIR / 'data' / 'contracts.db'))

# Recognition settings
HEADER_SCAN_ROWS = int(os.getenv('HEADER_SCAN_ROWS', '3'))
DEFAULT_MIN_MATCH_FIELDS = int(os.getenv('MIN_MATCH_FIELDS', '2'))
DEFAULT_MATCH_MODE = os.getenv('MATCH_MODE', 'fuzzy')

# Canonical fields consulted when linking a row to an existing project
PROJECT_NAME_FIELDS = [
    name.strip() for name in os.getenv('PROJECT_NAME_FIELDS', 'projectName').split(',') if name.strip()
]
PROJECT_CODE_FIELDS = [
    name.strip() for name in os.getenv('PROJECT_CODE_FIELDS', 'projectCode').split(',') if name.strip()
]

# Job settings
MAX_JOB_ERRORS = int(os.getenv('MAX_JOB_ERRORS', '1000'))
PROGRESS_POLL_SECONDS = float(os.getenv('PROGRESS_POLL_SECONDS', '0.5'))

# Logging settings
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_DIR = Path(os.getenv('LOG_DIR', str(BASE_DIR / 'logs')))
