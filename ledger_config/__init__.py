"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains
    configuration.  It reads one YAML file (the packaged defaults unless a
    path is given) and returns a frozen ``LedgerConfig``.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ConfigurationError`` -- the content does not describe a valid
      configuration.

Every successful call emits a ``LEDGER_CONFIG_TRACE`` log entry carrying
the config id, version and checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ledger_config.loader import load_yaml_file, parse_config
from ledger_config.schema import DatabaseSettings, LedgerConfig

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "ledger.yaml"


def get_active_config(path: Path | str | None = None) -> LedgerConfig:
    """The public configuration entrypoint.

    Args:
        path: YAML file to load.  Defaults to the packaged
            ``defaults/ledger.yaml``.

    Returns:
        LedgerConfig -- not cached; callers hold on to it.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(config_path), str(config_path))

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": config.source,
        },
    )
    return config


__all__ = ["DEFAULT_CONFIG_PATH", "DatabaseSettings", "LedgerConfig", "get_active_config"]
