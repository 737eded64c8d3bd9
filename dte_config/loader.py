"""
Configuration Loader (``dte_config.loader``).

Responsibility
--------------
Loads a YAML configuration document and parses it into the frozen
``dte_config.schema`` dataclasses.  Runtime callers go through
``dte_config.get_active_config()``; this module is the machinery behind it.

Invariants enforced
-------------------
* Rates are parsed to ``Decimal`` from strings or ints.  A bare YAML float
  (``vat_rate: 0.13``) is rejected so no binary rounding can creep in.
* Unknown top-level sections and unknown keys inside a section are errors.
* ``compute_checksum`` produces a deterministic SHA-256 of the canonical
  document, logged when a configuration is loaded.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing or invalid values  -> ``ValueError`` / ``KeyError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

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

_SECTIONS = {
    "database",
    "taxes",
    "numbering",
    "inventory",
    "listing",
    "reporting",
    "logging",
}
_TOP_LEVEL = _SECTIONS | {"config_id", "version"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")
    return data


def parse_decimal(value: Any, name: str) -> Decimal:
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"{name} must be quoted as a decimal string, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{name} is not a decimal: {value!r}") from None


def parse_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return value


def parse_bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be true or false, got {value!r}")
    return value


def _section(data: dict[str, Any], name: str, cls) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Section {name!r} must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(section) - known
    if unknown:
        raise ValueError(f"Unknown keys in {name!r}: {sorted(unknown)}")
    return section


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    section = _section(data, "database", DatabaseConfig)
    if not section.get("url"):
        raise KeyError("database.url is required")
    kwargs: dict[str, Any] = {"url": str(section["url"])}
    if "echo" in section:
        kwargs["echo"] = parse_bool(section["echo"], "database.echo")
    for key in ("pool_size", "max_overflow", "pool_timeout", "pool_recycle", "lock_timeout_ms"):
        if key in section:
            kwargs[key] = parse_int(section[key], f"database.{key}")
    return DatabaseConfig(**kwargs)


def parse_taxes(data: dict[str, Any]) -> TaxConfig:
    section = _section(data, "taxes", TaxConfig)
    return TaxConfig(
        **{key: parse_decimal(value, f"taxes.{key}") for key, value in section.items()}
    )


def parse_numbering(data: dict[str, Any]) -> NumberingConfig:
    section = _section(data, "numbering", NumberingConfig)
    return NumberingConfig(**{key: str(value) for key, value in section.items()})


def parse_inventory(data: dict[str, Any]) -> InventoryConfig:
    section = _section(data, "inventory", InventoryConfig)
    kwargs: dict[str, Any] = {}
    if "allow_negative_stock" in section:
        kwargs["allow_negative_stock"] = parse_bool(
            section["allow_negative_stock"], "inventory.allow_negative_stock"
        )
    if "low_stock_threshold" in section:
        kwargs["low_stock_threshold"] = parse_int(
            section["low_stock_threshold"], "inventory.low_stock_threshold"
        )
    return InventoryConfig(**kwargs)


def parse_listing(data: dict[str, Any]) -> ListingConfig:
    section = _section(data, "listing", ListingConfig)
    listing = ListingConfig(
        **{key: parse_int(value, f"listing.{key}") for key, value in section.items()}
    )
    if not 1 <= listing.default_page_size <= listing.max_page_size:
        raise ValueError("listing.default_page_size must be between 1 and max_page_size")
    return listing


def parse_reporting(data: dict[str, Any]) -> ReportingConfig:
    section = _section(data, "reporting", ReportingConfig)
    reporting = ReportingConfig(
        **{key: parse_int(value, f"reporting.{key}") for key, value in section.items()}
    )
    if not -720 <= reporting.utc_offset_minutes <= 840:
        raise ValueError("reporting.utc_offset_minutes is outside -720..840")
    return reporting


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    section = _section(data, "logging", LoggingConfig)
    level = str(section.get("level", "INFO")).upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ValueError(f"logging.level is not a logging level: {level!r}")
    return LoggingConfig(level=level)


def parse_config(data: dict[str, Any]) -> DteConfig:
    """
    Parse a whole configuration document.

    Postconditions:
        - ``checksum`` is the SHA-256 of ``data`` as given.
    """
    unknown = set(data) - _TOP_LEVEL
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    return DteConfig(
        config_id=str(data.get("config_id", "dte")),
        version=parse_int(data.get("version", 1), "version"),
        database=parse_database(data),
        taxes=parse_taxes(data),
        numbering=parse_numbering(data),
        inventory=parse_inventory(data),
        listing=parse_listing(data),
        reporting=parse_reporting(data),
        logging=parse_logging(data),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
