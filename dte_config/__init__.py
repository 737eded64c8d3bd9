"""
dte_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains settings.
    No other component reads configuration files or environment variables.

Architecture position:
    Configuration layer.  Sits above ``dte_kernel`` and below
    ``dte_services``.  The kernel never imports from this package; the
    schema's bridge methods hand it kernel value objects instead.

Resolution order:
    1. ``path`` argument
    2. ``DTE_CONFIG_PATH`` environment variable
    3. the packaged ``defaults.yaml``

    ``DTE_DATABASE_URL``, when set, replaces ``database.url``.

Failure modes:
    - ``FileNotFoundError`` -- configured path does not exist.
    - ``ValueError`` / ``KeyError`` -- invalid or missing values.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

from dte_config.loader import load_yaml_file, parse_config
from dte_config.schema import (
    DatabaseConfig,
    DteConfig,
    InventoryConfig,
    ListingConfig,
    LoggingConfig,
    NumberingConfig,
    ReportingConfig,
    TaxConfig,
)
from dte_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_PATH_ENV = "DTE_CONFIG_PATH"
DATABASE_URL_ENV = "DTE_DATABASE_URL"


def get_active_config(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> DteConfig:
    """The ONLY public configuration entrypoint."""
    env = os.environ if environ is None else environ

    source = Path(path or env.get(CONFIG_PATH_ENV) or DEFAULTS_PATH)
    config = parse_config(load_yaml_file(source))

    database_url = env.get(DATABASE_URL_ENV)
    if database_url:
        config = replace(config, database=replace(config.database, url=database_url))

    logger.info(
        "config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(source),
            "database_url_overridden": bool(database_url),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "DteConfig",
    "DatabaseConfig",
    "TaxConfig",
    "NumberingConfig",
    "InventoryConfig",
    "ListingConfig",
    "ReportingConfig",
    "LoggingConfig",
]
