"""
Tests for FieldAliasIndex.
"""

from unittest.mock import Mock

import pytest

from models.field_config import FieldConfig, RecordType
from services.config_store import ConfigStore
from services.errors import AliasCollisionError, ConfigurationError
from services.field_alias_index import FieldAliasIndex


@pytest.fixture
def configs():
    return [
        FieldConfig('contractNumber', 'contract', aliases='合同编号,合同号', category='core', required=True),
        FieldConfig('contractName', 'contract', aliases='合同名称,项目名称', category='core'),
        FieldConfig('partyA', 'contract', aliases='甲方', category='core', required=True),
        FieldConfig('remarks', 'contract', aliases='备注'),
        FieldConfig('procurementNumber', 'procurement', aliases='招采编号', category='core'),
        FieldConfig('procurementName', 'procurement', aliases='采购名称,项目名称', category='core'),
    ]


@pytest.fixture
def index(configs):
    return FieldAliasIndex(configs=configs)


class TestFieldAliasIndex:
    """Test label matching and index maintenance"""

    def test_match_alias_and_name(self, index):
        assert index.match('合同编号', RecordType.CONTRACT) == 'contractNumber'
        assert index.match('contractNumber', 'contract') == 'contractNumber'
        assert index.match('  CONTRACTNUMBER ', 'contract') == 'contractNumber'

    def test_match_is_exact(self, index):
        """Substrings of an alias never match"""
        assert index.match('合同', RecordType.CONTRACT) is None
        assert index.match('合同编号（新）', RecordType.CONTRACT) is None

    def test_non_string_and_blank_labels(self, index):
        assert index.match(None, RecordType.CONTRACT) is None
        assert index.match(12, RecordType.CONTRACT) is None
        assert index.match('   ', RecordType.CONTRACT) is None
        assert not index.match_any('')

    def test_match_respects_record_type(self, index):
        assert index.match('招采编号', RecordType.CONTRACT) is None
        assert index.match('招采编号', RecordType.PROCUREMENT) == 'procurementNumber'
        assert index.match('项目名称', RecordType.PROCUREMENT) == 'procurementName'
        assert index.match_any('招采编号')

    def test_match_headers(self, index):
        headers = ['合同编号', '说明', '甲方', None, '合同号']
        assert index.match_headers(headers, RecordType.CONTRACT) == ['contractNumber', 'partyA', 'contractNumber']

    def test_column_mapping_later_column_wins(self, index):
        mapping = index.build_column_mapping(['合同编号', '甲方', '合同号'], RecordType.CONTRACT)
        assert mapping == {'contractNumber': 2, 'partyA': 1}

    def test_field_accessors(self, index):
        assert [f.name for f in index.core_fields('contract')] == ['contractNumber', 'contractName', 'partyA']
        assert [f.name for f in index.required_fields('contract')] == ['contractNumber', 'partyA']
        assert index.get('remarks', 'contract').label == '备注'
        assert index.get('remarks', 'procurement') is None
        assert index.available_record_types() == ['contract', 'procurement']

    def test_alias_collision(self, configs):
        configs.append(FieldConfig('contractTitle', 'contract', aliases='合同名称'))
        with pytest.raises(AliasCollisionError) as exc_info:
            FieldAliasIndex(configs=configs)

        assert exc_info.value.alias == '合同名称'
        assert exc_info.value.fields == ('contractName', 'contractTitle')

    def test_same_alias_across_record_types_allowed(self, index):
        assert index.match('项目名称', 'contract') == 'contractName'

    def test_inactive_configs_ignored(self, configs):
        configs.append(FieldConfig('legacyName', 'contract', aliases='合同名称', active=False))
        index = FieldAliasIndex(configs=configs)
        assert index.match('合同名称', 'contract') == 'contractName'

    def test_validate_field_names(self, index):
        index.validate_field_names(['contractNumber', 'procurementName'])
        with pytest.raises(ConfigurationError, match='projectName'):
            index.validate_field_names(['contractNumber', 'projectName'])

    def test_refresh_swaps_index(self, configs):
        store = Mock(spec=ConfigStore)
        store.load_active_field_configs.return_value = configs[:2]
        index = FieldAliasIndex(store)
        assert index.match('甲方', 'contract') is None

        store.load_active_field_configs.return_value = configs
        index.refresh()
        assert index.match('甲方', 'contract') == 'partyA'

    def test_failed_refresh_keeps_old_index(self, configs):
        store = Mock(spec=ConfigStore)
        store.load_active_field_configs.return_value = configs
        index = FieldAliasIndex(store)

        store.load_active_field_configs.return_value = configs + [
            FieldConfig('other', 'contract', aliases='甲方')
        ]
        with pytest.raises(AliasCollisionError):
            index.refresh()
        assert index.match('甲方', 'contract') == 'partyA'

    def test_refresh_without_store(self, index):
        with pytest.raises(ConfigurationError):
            index.refresh()

    def test_seeded_catalog_builds(self, db):
        index = FieldAliasIndex(ConfigStore(db))
        assert index.match('含税签约合同价（元）', 'contract') == 'contractAmount'
        assert index.match('所属项目', 'procurement') == 'projectName'
        assert len(index.core_fields('procurement')) == 22
