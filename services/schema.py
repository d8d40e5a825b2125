"""
Bootstrap schema for the import pipeline tables.
"""

from loguru import logger

from .database import Database

# Columns every imported record carries about its source and processing
_PROVENANCE_COLUMNS = """
    filePath TEXT NOT NULL,
    fileName TEXT NOT NULL,
    fileSize INTEGER,
    fileHash TEXT,
    sheetName TEXT NOT NULL,

    extendedFields TEXT,

    status TEXT DEFAULT 'pending',
    totalRows INTEGER DEFAULT 0,
    processedRows INTEGER DEFAULT 0,
    errorRows INTEGER DEFAULT 0,
    matchScore REAL DEFAULT 0,
    isVerified BOOLEAN DEFAULT 0,
    hasErrors BOOLEAN DEFAULT 0,
    errorInfo TEXT,
    processingLog TEXT,
    cleaningLog TEXT,

    createdAt DATETIME DEFAULT CURRENT_TIMESTAMP,
    updatedAt DATETIME DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (projectId) REFERENCES projects(id) ON DELETE SET NULL,

    CHECK (status IN ('pending', 'processing', 'completed', 'failed')),
    CHECK (totalRows >= 0),
    CHECK (processedRows >= 0),
    CHECK (errorRows >= 0),
    CHECK (matchScore >= 0 AND matchScore <= 1),
    CHECK (extendedFields IS NULL OR json_valid(extendedFields))
"""

_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS projects (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        projectCode TEXT UNIQUE NOT NULL,
        projectName TEXT NOT NULL,
        projectAlias TEXT,
        description TEXT,
        status TEXT DEFAULT 'active',
        createdAt DATETIME DEFAULT CURRENT_TIMESTAMP,
        updatedAt DATETIME DEFAULT CURRENT_TIMESTAMP,

        CHECK (status IN ('active', 'inactive', 'archived')),
        CHECK (length(projectCode) <= 50),
        CHECK (length(projectName) <= 200)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_projects_code ON projects(projectCode)",
    "CREATE INDEX IF NOT EXISTS idx_projects_name ON projects(projectName)",
    "CREATE INDEX IF NOT EXISTS idx_projects_status ON projects(status)",

    """
    CREATE TABLE IF NOT EXISTS fieldConfigs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        fieldName TEXT NOT NULL,
        fieldAlias TEXT,
        fieldType TEXT NOT NULL,
        dataType TEXT NOT NULL,
        fieldCategory TEXT DEFAULT 'extended',
        databaseColumn TEXT,
        isVisible BOOLEAN DEFAULT 1,
        isActive BOOLEAN DEFAULT 1,
        displayOrder INTEGER DEFAULT 0,
        isRequired BOOLEAN DEFAULT 0,
        defaultValue TEXT,
        createdAt DATETIME DEFAULT CURRENT_TIMESTAMP,
        updatedAt DATETIME DEFAULT CURRENT_TIMESTAMP,

        CHECK (fieldType IN ('contract', 'procurement')),
        CHECK (dataType IN ('date', 'number', 'text')),
        CHECK (fieldCategory IN ('core', 'extended')),
        CHECK (displayOrder >= 0),
        UNIQUE(fieldName, fieldType)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_fieldConfigs_type ON fieldConfigs(fieldType)",
    "CREATE INDEX IF NOT EXISTS idx_fieldConfigs_order ON fieldConfigs(displayOrder)",

    """
    CREATE TABLE IF NOT EXISTS dataCleaningRules (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        fieldName TEXT NOT NULL,
        fieldType TEXT NOT NULL,
        dataType TEXT NOT NULL,
        cleaningType TEXT NOT NULL,
        ruleConfig TEXT NOT NULL,
        isActive BOOLEAN DEFAULT 1,
        priority INTEGER DEFAULT 0,
        description TEXT,
        createdAt DATETIME DEFAULT CURRENT_TIMESTAMP,
        updatedAt DATETIME DEFAULT CURRENT_TIMESTAMP,

        CHECK (fieldType IN ('contract', 'procurement')),
        CHECK (dataType IN ('date', 'number', 'text')),
        CHECK (cleaningType IN ('date_format', 'number_format', 'text_clean', 'remove_chars', 'trim_spaces')),
        CHECK (priority >= 0),
        UNIQUE(fieldName, fieldType, cleaningType)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_cleaningRules_field ON dataCleaningRules(fieldName, fieldType)",
    "CREATE INDEX IF NOT EXISTS idx_cleaningRules_active ON dataCleaningRules(isActive)",

    """
    CREATE TABLE IF NOT EXISTS contracts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        projectId INTEGER,

        contractSequence TEXT,
        contractNumber TEXT,
        contractName TEXT,
        contractHandler TEXT,
        partyA TEXT,
        partyB TEXT,
        partyBContact TEXT,
        contractContact TEXT,
        contractAmount DECIMAL(15,2),
        signDate DATE,
        contractPeriod TEXT,
        guaranteeReturnDate DATE,
    """ + _PROVENANCE_COLUMNS + """,
        CHECK (contractAmount >= 0)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_contracts_project ON contracts(projectId)",
    "CREATE INDEX IF NOT EXISTS idx_contracts_number ON contracts(contractNumber)",
    "CREATE INDEX IF NOT EXISTS idx_contracts_signDate ON contracts(signDate)",
    "CREATE INDEX IF NOT EXISTS idx_contracts_file ON contracts(fileName)",

    """
    CREATE TABLE IF NOT EXISTS procurements (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        projectId INTEGER,

        procurementNumber TEXT,
        procurementName TEXT,
        procurer TEXT,
        planCompleteDate DATE,
        demandApprovalDate DATE,
        procurementHandler TEXT,
        demandDepartment TEXT,
        demandContact TEXT,
        budgetAmount DECIMAL(15,2),
        controlPrice DECIMAL(15,2),
        winningPrice DECIMAL(15,2),
        procurementPlatform TEXT,
        procurementMethod TEXT,
        evaluationMethod TEXT,
        awardMethod TEXT,
        bidOpeningDate DATE,
        evaluationCommittee TEXT,
        awardCommittee TEXT,
        resultPublishDate DATE,
        noticeIssueDate DATE,
        winner TEXT,
        winnerContact TEXT,
    """ + _PROVENANCE_COLUMNS + """,
        CHECK (budgetAmount >= 0),
        CHECK (controlPrice >= 0),
        CHECK (winningPrice >= 0)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_procurements_project ON procurements(projectId)",
    "CREATE INDEX IF NOT EXISTS idx_procurements_number ON procurements(procurementNumber)",
    "CREATE INDEX IF NOT EXISTS idx_procurements_bidDate ON procurements(bidOpeningDate)",
    "CREATE INDEX IF NOT EXISTS idx_procurements_file ON procurements(fileName)",

    """
    CREATE TABLE IF NOT EXISTS systemConfigs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        configKey TEXT UNIQUE NOT NULL,
        configValue TEXT,
        configType TEXT DEFAULT 'string',
        description TEXT,
        isSystem BOOLEAN DEFAULT 0,
        createdAt DATETIME DEFAULT CURRENT_TIMESTAMP,
        updatedAt DATETIME DEFAULT CURRENT_TIMESTAMP,

        CHECK (configType IN ('string', 'number', 'boolean', 'json'))
    )
    """,
]

TABLES = ['projects', 'fieldConfigs', 'dataCleaningRules', 'contracts', 'procurements', 'systemConfigs']


def create_schema(db: Database) -> None:
    """Create every table and index that does not exist yet"""
    def _create(conn: Database):
        for statement in _STATEMENTS:
            conn.execute(statement)

    db.run_in_transaction(_create)
    logger.info(f"Schema ready at {db.db_path}")
