"""
Default field catalog, cleaning rules, system configs and sample projects.
"""

import json
from typing import Dict

from loguru import logger

from .database import Database

# (fieldName, aliases, dataType, displayOrder, isRequired)
CONTRACT_CORE_FIELDS = [
    ('contractSequence', '合同序号', 'text', 1, 0),
    ('contractNumber', '合同编号,合同号', 'text', 2, 1),
    ('contractName', '合同名称,项目名称', 'text', 3, 1),
    ('contractHandler', '合同签订经办人,经办人', 'text', 4, 0),
    ('partyA', '甲方,发包方', 'text', 5, 1),
    ('partyB', '乙方,承包方', 'text', 6, 1),
    ('partyBContact', '乙方负责人及联系方式,乙方联系方式', 'text', 7, 0),
    ('contractContact', '合同文本内乙方联系人及方式,合同联系人', 'text', 8, 0),
    ('contractAmount', '含税签约合同价（元）,合同金额,总金额', 'number', 9, 1),
    ('signDate', '签订日期,签约日期', 'date', 10, 1),
    ('contractPeriod', '合同工期/服务期限,工期,服务期限', 'text', 11, 0),
    ('guaranteeReturnDate', '履约担保退回时间,担保退回日期', 'date', 12, 0),
]

PROCUREMENT_CORE_FIELDS = [
    ('procurementNumber', '招采编号,采购编号', 'text', 1, 1),
    ('procurementName', '采购名称,项目名称', 'text', 2, 1),
    ('procurer', '采购人', 'text', 3, 1),
    ('planCompleteDate', '采购计划完成日期,计划完成日期', 'date', 4, 0),
    ('demandApprovalDate', '采购需求书审批完成日期（OA）,需求审批日期', 'date', 5, 0),
    ('procurementHandler', '招采经办人,采购经办人', 'text', 6, 0),
    ('demandDepartment', '需求部门', 'text', 7, 0),
    ('demandContact', '需求部门经办人及联系方式,需求部门联系方式', 'text', 8, 0),
    ('budgetAmount', '预算金额（元）,预算金额', 'number', 9, 0),
    ('controlPrice', '采购控制价（元）,控制价', 'number', 10, 0),
    ('winningPrice', '中标价（元）,中标价', 'number', 11, 0),
    ('procurementPlatform', '采购平台', 'text', 12, 0),
    ('procurementMethod', '采购方式', 'text', 13, 0),
    ('evaluationMethod', '评标方法', 'text', 14, 0),
    ('awardMethod', '定标方法', 'text', 15, 0),
    ('bidOpeningDate', '开标日期', 'date', 16, 0),
    ('evaluationCommittee', '评标委员会成员', 'text', 17, 0),
    ('awardCommittee', '定标委员会成员', 'text', 18, 0),
    ('resultPublishDate', '平台中标结果公示完成日期（阳光采购平台）,结果公示日期', 'date', 19, 0),
    ('noticeIssueDate', '中标通知书发放日期,通知书发放日期', 'date', 20, 0),
    ('winner', '中标人', 'text', 21, 0),
    ('winnerContact', '中标人联系人及方式,中标人联系方式', 'text', 22, 0),
]

# Extended fields shared by both record types; projectName/projectCode feed project linking
EXTENDED_FIELDS = [
    ('projectName', '所属项目,项目', 'text', 100, 0),
    ('projectCode', '项目编号,项目代码', 'text', 101, 0),
    ('remarks', '备注', 'text', 102, 0),
]

_DATE_RULE = {
    'formats': ['YYYY-MM-DD', 'YYYY/MM/DD', 'DD/MM/YYYY', 'YYYY年MM月DD日'],
    'output': 'YYYY-MM-DD',
}
_AMOUNT_RULE = {
    'remove_chars': ['¥', '$', '元', ',', ' '],
    'decimal_places': 2,
}

# (fieldName, fieldType, dataType, cleaningType, ruleConfig, description, priority)
CLEANING_RULES = [
    ('signDate', 'contract', 'date', 'date_format', _DATE_RULE, '签订日期格式统一', 1),
    ('guaranteeReturnDate', 'contract', 'date', 'date_format', _DATE_RULE, '担保退回日期格式统一', 1),
    ('planCompleteDate', 'procurement', 'date', 'date_format', _DATE_RULE, '计划完成日期格式统一', 1),
    ('demandApprovalDate', 'procurement', 'date', 'date_format', _DATE_RULE, '需求审批日期格式统一', 1),
    ('bidOpeningDate', 'procurement', 'date', 'date_format', _DATE_RULE, '开标日期格式统一', 1),
    ('resultPublishDate', 'procurement', 'date', 'date_format', _DATE_RULE, '结果公示日期格式统一', 1),
    ('noticeIssueDate', 'procurement', 'date', 'date_format', _DATE_RULE, '通知书发放日期格式统一', 1),
    ('contractAmount', 'contract', 'number', 'number_format', _AMOUNT_RULE, '合同金额格式统一', 1),
    ('budgetAmount', 'procurement', 'number', 'number_format', _AMOUNT_RULE, '预算金额格式统一', 1),
    ('controlPrice', 'procurement', 'number', 'number_format', _AMOUNT_RULE, '控制价格式统一', 1),
    ('winningPrice', 'procurement', 'number', 'number_format', _AMOUNT_RULE, '中标价格式统一', 1),
]

# (configKey, configValue, configType, description, isSystem)
SYSTEM_CONFIGS = [
    ('app.version', '1.0.0', 'string', '应用版本', 1),
    ('db.version', '2', 'number', '数据库版本', 1),
    ('import.batchSize', '1000', 'number', '导入批次大小', 0),
    ('export.maxRows', '10000', 'number', '导出最大行数', 0),
    ('cleaning.enabled', 'true', 'boolean', '是否启用数据清洗', 0),
    ('cleaning.logLevel', 'info', 'string', '清洗日志级别', 0),
]

# (projectCode, projectName, projectAlias, description, status)
SAMPLE_PROJECTS = [
    ('PROJ001', '智慧城市建设项目', '智慧城市,城市建设', '智慧城市基础设施建设与数字化改造项目', 'active'),
    ('PROJ002', '数字化办公系统', '数字办公,OA系统', '企业数字化办公平台开发与实施', 'active'),
    ('PROJ003', '绿色能源发展计划', '绿色能源,新能源', '可再生能源项目开发与推广', 'active'),
    ('PROJ004', '教育信息化升级', '教育信息化,智慧教育', '学校信息化设备采购与系统升级', 'active'),
    ('PROJ005', '医疗设备采购项目', '医疗设备,医院建设', '医院医疗设备更新与采购项目', 'active'),
]


def _field_rows():
    for field_type, core_fields in (('contract', CONTRACT_CORE_FIELDS), ('procurement', PROCUREMENT_CORE_FIELDS)):
        for name, aliases, data_type, order, required in core_fields:
            yield (name, aliases, field_type, data_type, 'core', name, order, required)
        for name, aliases, data_type, order, required in EXTENDED_FIELDS:
            yield (name, aliases, field_type, data_type, 'extended', None, order, required)


def _seed_table(db: Database, table: str, sql: str, rows) -> int:
    if db.count_rows(table):
        logger.info(f"{table} already populated, skipping seed")
        return 0
    inserted = db.executemany(sql, rows)
    logger.info(f"Seeded {inserted} rows into {table}")
    return inserted


def seed_defaults(db: Database) -> Dict[str, int]:
    """
    Insert the default catalog into empty tables.

    Returns:
        Inserted row count per table (0 for tables that already had rows)
    """
    def _seed(conn: Database) -> Dict[str, int]:
        return {
            'fieldConfigs': _seed_table(
                conn, 'fieldConfigs',
                """
                INSERT INTO fieldConfigs
                (fieldName, fieldAlias, fieldType, dataType, fieldCategory, databaseColumn, displayOrder, isRequired)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                list(_field_rows())
            ),
            'dataCleaningRules': _seed_table(
                conn, 'dataCleaningRules',
                """
                INSERT INTO dataCleaningRules
                (fieldName, fieldType, dataType, cleaningType, ruleConfig, description, priority)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (name, field_type, data_type, kind, json.dumps(config, ensure_ascii=False), description, priority)
                    for name, field_type, data_type, kind, config, description, priority in CLEANING_RULES
                ]
            ),
            'systemConfigs': _seed_table(
                conn, 'systemConfigs',
                """
                INSERT INTO systemConfigs (configKey, configValue, configType, description, isSystem)
                VALUES (?, ?, ?, ?, ?)
                """,
                SYSTEM_CONFIGS
            ),
            'projects': _seed_table(
                conn, 'projects',
                """
                INSERT INTO projects (projectCode, projectName, projectAlias, description, status)
                VALUES (?, ?, ?, ?, ?)
                """,
                SAMPLE_PROJECTS
            ),
        }

    return db.run_in_transaction(_seed)
