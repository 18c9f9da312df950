"""
Tests for configuration loading.

Covers:
- Packaged defaults
- Override files and module sections
- Rejection of unknown sections and invalid module values
- The LEDGER_CONFIG_TRACE log entry
"""

import pytest
import yaml

from ledger_config import DEFAULT_CONFIG_PATH, get_active_config
from ledger_config.loader import compute_checksum, parse_config
from ledger_kernel.exceptions import ConfigurationError
from ledger_modules.consignment import ConsignmentConfig
from ledger_modules.inventory.config import InventoryConfig


def _write(tmp_path, data):
    path = tmp_path / "ledger.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:

    def test_default_load(self):
        config = get_active_config()

        assert config.config_id == "default"
        assert config.version == 1
        assert config.database.url.startswith("sqlite")
        assert config.source == str(DEFAULT_CONFIG_PATH)

    def test_module_defaults(self):
        config = get_active_config()

        assert config.inventory.non_restock_reasons == ("damaged", "expired")
        assert config.consignment.restore_available_on_delete is True
        assert config.consignment.settlement_status == "completed"

    def test_trace_logged(self, captured_logs):
        config = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "LEDGER_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["config_id"] == "default"
        assert traces[0]["checksum"] == config.checksum


class TestOverrides:

    def test_override_file(self, tmp_path):
        path = _write(
            tmp_path,
            {
                "config_id": "branch-east",
                "version": 3,
                "database": {"url": "sqlite:///ledger.db"},
                "inventory": {"non_restock_reasons": ["damaged", "recalled"]},
                "consignment": {"check_stock_on_issue": False, "settlement_status": "pending"},
            },
        )

        config = get_active_config(path)

        assert config.config_id == "branch-east"
        assert config.version == 3
        assert config.inventory.non_restock_reasons == ("damaged", "recalled")
        assert config.consignment.check_stock_on_issue is False
        assert config.consignment.settlement_status == "pending"

    def test_missing_module_sections_use_defaults(self, tmp_path):
        config = get_active_config(_write(tmp_path, {"database": {"url": "sqlite://"}}))

        assert config.inventory == InventoryConfig()
        assert config.consignment == ConsignmentConfig()

    def test_checksum_tracks_content(self):
        first = compute_checksum({"database": {"url": "sqlite://"}})
        second = compute_checksum({"database": {"url": "sqlite:///other.db"}})

        assert first != second
        assert first == compute_checksum({"database": {"url": "sqlite://"}})


class TestRejection:

    def test_unknown_section(self, tmp_path):
        path = _write(tmp_path, {"database": {"url": "sqlite://"}, "ledgers": {}})

        with pytest.raises(ConfigurationError) as exc_info:
            get_active_config(path)

        assert "ledgers" in exc_info.value.reason

    def test_database_required(self):
        with pytest.raises(ConfigurationError):
            parse_config({"config_id": "x"}, "inline")

    def test_database_url_required(self):
        with pytest.raises(ConfigurationError):
            parse_config({"database": {"echo": True}}, "inline")

    def test_bad_settlement_status(self):
        data = {"database": {"url": "sqlite://"}, "consignment": {"settlement_status": "done"}}

        with pytest.raises(ConfigurationError) as exc_info:
            parse_config(data, "inline")

        assert exc_info.value.code == "CONFIGURATION_ERROR"
        assert exc_info.value.source == "inline"

    def test_unknown_module_key(self):
        data = {"database": {"url": "sqlite://"}, "inventory": {"restock_everything": True}}

        with pytest.raises(ConfigurationError):
            parse_config(data, "inline")

    def test_top_level_must_be_mapping(self):
        with pytest.raises(ConfigurationError):
            parse_config(["database"], "inline")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestModuleConfigs:

    def test_inventory_validation(self):
        with pytest.raises(ValueError):
            InventoryConfig(default_conversion_factor=0)
        with pytest.raises(ValueError):
            InventoryConfig(non_restock_reasons=("damaged", ""))

    def test_inventory_lists_become_tuples(self):
        config = InventoryConfig.from_dict({"product_categories": ["grain", "oil"]})

        assert config.product_categories == ("grain", "oil")

    def test_consignment_with_defaults(self):
        assert ConsignmentConfig.with_defaults() == ConsignmentConfig()

    def test_consignment_validation(self):
        with pytest.raises(ValueError):
            ConsignmentConfig(settlement_status="archived")
