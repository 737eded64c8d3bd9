"""
Runtime configuration schema.

Every section is a frozen dataclass.  The loader parses a YAML document into
``DteConfig``; the bridge methods turn sections into the kernel's own value
objects (TaxPolicy, DteNumberingScheme) so the kernel never imports from
this package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from dte_kernel.domain.identifiers import DteNumberingScheme
from dte_kernel.domain.money import TaxPolicy


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 1800
    lock_timeout_ms: int = 5000


@dataclass(frozen=True)
class TaxConfig:
    """Rates as exact decimals (parsed from strings, never floats)."""

    vat_rate: Decimal = Decimal("0.13")
    rent_retention_rate: Decimal = Decimal("0.10")
    vat_retention_rate: Decimal = Decimal("0.01")

    def tax_policy(self) -> TaxPolicy:
        return TaxPolicy(
            vat_rate=self.vat_rate,
            rent_retention_rate=self.rent_retention_rate,
            vat_retention_rate=self.vat_retention_rate,
        )


@dataclass(frozen=True)
class NumberingConfig:
    prefix: str = "DTE"
    environment: str = "01"
    branch_marker: str = "S"
    pos_marker: str = "P"
    pos_code: str = "001"

    def numbering_scheme(self) -> DteNumberingScheme:
        return DteNumberingScheme(
            prefix=self.prefix,
            environment=self.environment,
            branch_marker=self.branch_marker,
            pos_marker=self.pos_marker,
            pos_code=self.pos_code,
        )


@dataclass(frozen=True)
class InventoryConfig:
    allow_negative_stock: bool = False
    low_stock_threshold: int = 10


@dataclass(frozen=True)
class ListingConfig:
    default_page_size: int = 25
    max_page_size: int = 100


@dataclass(frozen=True)
class ReportingConfig:
    # El Salvador, UTC-6, no daylight saving
    utc_offset_minutes: int = -360


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class DteConfig:
    """The complete runtime configuration."""

    config_id: str
    version: int
    database: DatabaseConfig
    taxes: TaxConfig = field(default_factory=TaxConfig)
    numbering: NumberingConfig = field(default_factory=NumberingConfig)
    inventory: InventoryConfig = field(default_factory=InventoryConfig)
    listing: ListingConfig = field(default_factory=ListingConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""
