"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Reads a YAML configuration file and parses it into a ``LedgerConfig``.
Callers go through ``ledger_config.get_active_config()``; this module is
its implementation.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown or invalid section values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import DatabaseSettings, LedgerConfig
from ledger_kernel.exceptions import ConfigurationError
from ledger_modules.consignment.config import ConsignmentConfig
from ledger_modules.inventory.config import InventoryConfig

_SECTIONS = {"config_id", "version", "database", "inventory", "consignment"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_database(data: dict[str, Any], source: str) -> DatabaseSettings:
    if "url" not in data:
        raise ConfigurationError(source, "database.url is required")
    return DatabaseSettings(url=str(data["url"]), echo=bool(data.get("echo", False)))


def parse_config(data: dict[str, Any], source: str) -> LedgerConfig:
    """
    Build a ``LedgerConfig`` from a parsed YAML mapping.

    Missing module sections fall back to the module defaults.
    """
    if not isinstance(data, dict):
        raise ConfigurationError(source, "top level must be a mapping")
    unknown = set(data) - _SECTIONS
    if unknown:
        raise ConfigurationError(source, f"unknown sections: {sorted(unknown)}")
    if "database" not in data:
        raise ConfigurationError(source, "database section is required")

    try:
        inventory = InventoryConfig.from_dict(data.get("inventory") or {})
        consignment = ConsignmentConfig.from_dict(data.get("consignment") or {})
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(source, str(exc)) from exc

    return LedgerConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        database=parse_database(data["database"], source),
        inventory=inventory,
        consignment=consignment,
        checksum=compute_checksum(data),
        source=source,
    )
