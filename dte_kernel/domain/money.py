"""
Money -- exact tax and retention arithmetic for DTE documents.

Responsibility:
    Computes line subtotals, VAT (IVA), rent retention (ISR), VAT retention
    and document totals with exact decimals.  Provides the one sanctioned
    rounding function for monetary figures.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Used by the invoice writer, the lifecycle manager and the selectors.

Invariants enforced:
    - Decimal only: floats are rejected with TypeError, never coerced.
    - Canonical rounding: ROUND_HALF_EVEN to 2 places, applied only when a
      figure is finalized (VAT, retentions, total).  Line and invoice
      subtotals are accumulated unrounded.
    - Non-negative lines: a discount larger than the gross amount clamps the
      line subtotal at zero.
    - VAT retention is computed from the rounded VAT amount.

Failure modes:
    - TypeError on float (or bool) input.
    - ValueError on strings that are not decimal literals, or on NaN/Infinity.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Iterable

MONEY_PLACES = 2
# Decimal places kept by stored amounts (NUMERIC scale on PostgreSQL)
STORED_PLACES = 9
MONEY_ROUNDING = ROUND_HALF_EVEN
ZERO = Decimal("0")

DEFAULT_VAT_RATE = Decimal("0.13")
DEFAULT_RENT_RETENTION_RATE = Decimal("0.10")
DEFAULT_VAT_RETENTION_RATE = Decimal("0.01")

_QUANTUM = Decimal(1).scaleb(-MONEY_PLACES)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Convert an int, str or Decimal to Decimal without passing through float.

    Raises:
        TypeError: For float, bool, or any other type.
        ValueError: For non-numeric strings or non-finite values.
    """
    if isinstance(value, bool):
        raise TypeError("Booleans are not monetary values")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Not a decimal literal: {value!r}") from None
    else:
        raise TypeError(
            f"Monetary values must be Decimal, int or str, got {type(value).__name__}"
        )
    if not result.is_finite():
        raise ValueError(f"Monetary values must be finite, got {value!r}")
    return result


def round_money(value: Decimal) -> Decimal:
    """Quantize to 2 places with banker's rounding."""
    return to_decimal(value).quantize(_QUANTUM, rounding=MONEY_ROUNDING)


def line_subtotal(
    quantity: int,
    unit_price: Decimal,
    discount: Decimal = ZERO,
) -> Decimal:
    """``max(quantity * unit_price - discount, 0)``, unrounded."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise TypeError(f"Quantity must be an int, got {type(quantity).__name__}")
    gross = Decimal(quantity) * to_decimal(unit_price)
    net = gross - to_decimal(discount)
    return net if net > ZERO else ZERO


def vat(subtotal: Decimal, rate: Decimal = DEFAULT_VAT_RATE) -> Decimal:
    return round_money(to_decimal(subtotal) * to_decimal(rate))


def rent_retention(
    subtotal: Decimal,
    rate: Decimal = DEFAULT_RENT_RETENTION_RATE,
) -> Decimal:
    return round_money(to_decimal(subtotal) * to_decimal(rate))


def vat_retention(
    vat_amount: Decimal,
    rate: Decimal = DEFAULT_VAT_RETENTION_RATE,
) -> Decimal:
    """1% of the already-rounded VAT amount."""
    return round_money(to_decimal(vat_amount) * to_decimal(rate))


def total(
    subtotal: Decimal,
    vat_amount: Decimal,
    rent_retention_amount: Decimal = ZERO,
    vat_retention_amount: Decimal = ZERO,
) -> Decimal:
    return round_money(
        to_decimal(subtotal)
        + to_decimal(vat_amount)
        - to_decimal(rent_retention_amount)
        - to_decimal(vat_retention_amount)
    )


@dataclass(frozen=True)
class TaxPolicy:
    """
    Rates applied when totalling a document.

    Contract:
        Every rate is a Decimal in [0, 1].  Values come from the ``taxes``
        section of the configuration.
    """

    vat_rate: Decimal = DEFAULT_VAT_RATE
    rent_retention_rate: Decimal = DEFAULT_RENT_RETENTION_RATE
    vat_retention_rate: Decimal = DEFAULT_VAT_RETENTION_RATE

    def __post_init__(self) -> None:
        for name in ("vat_rate", "rent_retention_rate", "vat_retention_rate"):
            rate = to_decimal(getattr(self, name))
            if rate < ZERO or rate > Decimal(1):
                raise ValueError(f"{name} must be between 0 and 1, got {rate}")
            object.__setattr__(self, name, rate)


@dataclass(frozen=True)
class InvoiceTotals:
    """Monetary breakdown of one document; every field is always present."""

    subtotal: Decimal
    vat: Decimal
    rent_retention: Decimal
    vat_retention: Decimal
    total: Decimal


def compute_totals(
    line_subtotals: Iterable[Decimal],
    *,
    apply_rent_retention: bool = False,
    apply_vat_retention: bool = False,
    policy: TaxPolicy | None = None,
) -> InvoiceTotals:
    """
    Roll unrounded line subtotals into the document breakdown.

    Retentions the caller did not opt into are zero, not absent.
    """
    policy = policy or TaxPolicy()
    subtotal = sum((to_decimal(s) for s in line_subtotals), ZERO)

    vat_amount = vat(subtotal, policy.vat_rate)
    rent = (
        rent_retention(subtotal, policy.rent_retention_rate)
        if apply_rent_retention
        else round_money(ZERO)
    )
    vat_ret = (
        vat_retention(vat_amount, policy.vat_retention_rate)
        if apply_vat_retention
        else round_money(ZERO)
    )

    return InvoiceTotals(
        subtotal=subtotal,
        vat=vat_amount,
        rent_retention=rent,
        vat_retention=vat_ret,
        total=total(subtotal, vat_amount, rent, vat_ret),
    )
