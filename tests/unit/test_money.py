"""
Unit tests for the money engine.

Verifies:
- Banker's rounding to two places
- Float prohibition
- Line subtotal clamp and unrounded subtotals
- Tax and retention composition (the 102.87 reference document)
"""

import pytest
from decimal import Decimal

from dte_kernel.domain.money import (
    TaxPolicy,
    ZERO,
    compute_totals,
    line_subtotal,
    rent_retention,
    round_money,
    to_decimal,
    total,
    vat,
    vat_retention,
)


class TestToDecimal:
    """Tests for to_decimal."""

    def test_string(self):
        assert to_decimal("100.50") == Decimal("100.50")

    def test_int(self):
        assert to_decimal(7) == Decimal("7")

    def test_decimal_passthrough(self):
        value = Decimal("1.005")
        assert to_decimal(value) is value

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            to_decimal(0.1)

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            to_decimal(True)

    def test_garbage_string_rejected(self):
        with pytest.raises(ValueError):
            to_decimal("ten dollars")

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_rejected(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)


class TestRoundMoney:
    """Half-even rounding at two places."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("0.125", "0.12"),
            ("0.135", "0.14"),
            ("2.675", "2.68"),
            ("2.665", "2.66"),
            ("-0.125", "-0.12"),
            ("10", "10.00"),
        ],
    )
    def test_half_even(self, raw, expected):
        assert round_money(Decimal(raw)) == Decimal(expected)

    def test_result_has_two_places(self):
        assert round_money(Decimal("3")).as_tuple().exponent == -2

    def test_deterministic(self):
        results = {round_money(Decimal("1234.5650")) for _ in range(50)}
        assert results == {Decimal("1234.56")}


class TestLineSubtotal:
    def test_quantity_times_price(self):
        assert line_subtotal(3, Decimal("2.50")) == Decimal("7.50")

    def test_discount_subtracted(self):
        assert line_subtotal(2, Decimal("10.00"), Decimal("1.50")) == Decimal("18.50")

    def test_discount_larger_than_gross_clamps_to_zero(self):
        assert line_subtotal(1, Decimal("5.00"), Decimal("8.00")) == ZERO

    def test_not_rounded(self):
        assert line_subtotal(3, Decimal("0.3333")) == Decimal("0.9999")

    def test_float_quantity_rejected(self):
        with pytest.raises(TypeError):
            line_subtotal(1.5, Decimal("1.00"))


class TestTaxes:
    def test_vat_on_100(self):
        assert vat(Decimal("100.00")) == Decimal("13.00")

    def test_vat_rounds_half_even(self):
        # 0.50 * 0.13 = 0.065 -> 0.06
        assert vat(Decimal("0.50")) == Decimal("0.06")

    def test_rent_retention(self):
        assert rent_retention(Decimal("100.00")) == Decimal("10.00")

    def test_vat_retention_uses_rounded_vat(self):
        assert vat_retention(Decimal("13.00")) == Decimal("0.13")

    def test_total_composition(self):
        assert total(
            Decimal("100.00"), Decimal("13.00"), Decimal("10.00"), Decimal("0.13")
        ) == Decimal("102.87")


class TestComputeTotals:
    def test_reference_document_with_both_retentions(self):
        totals = compute_totals(
            [Decimal("60.00"), Decimal("40.00")],
            apply_rent_retention=True,
            apply_vat_retention=True,
        )
        assert totals.subtotal == Decimal("100.00")
        assert totals.vat == Decimal("13.00")
        assert totals.rent_retention == Decimal("10.00")
        assert totals.vat_retention == Decimal("0.13")
        assert totals.total == Decimal("102.87")

    def test_retentions_not_requested_are_zero(self):
        totals = compute_totals([Decimal("100.00")])
        assert totals.rent_retention == Decimal("0.00")
        assert totals.vat_retention == Decimal("0.00")
        assert totals.total == Decimal("113.00")

    def test_empty_document(self):
        totals = compute_totals([])
        assert totals.total == Decimal("0.00")

    def test_vat_computed_on_unrounded_subtotal(self):
        # Three lines of 0.3333: subtotal 0.9999, VAT 0.129987 -> 0.13
        totals = compute_totals([Decimal("0.3333")] * 3)
        assert totals.vat == Decimal("0.13")
        assert totals.total == Decimal("1.13")

    def test_custom_policy(self):
        policy = TaxPolicy(vat_rate=Decimal("0.15"))
        totals = compute_totals([Decimal("100")], policy=policy)
        assert totals.vat == Decimal("15.00")


class TestTaxPolicy:
    def test_defaults(self):
        policy = TaxPolicy()
        assert policy.vat_rate == Decimal("0.13")
        assert policy.rent_retention_rate == Decimal("0.10")
        assert policy.vat_retention_rate == Decimal("0.01")

    def test_rate_above_one_rejected(self):
        with pytest.raises(ValueError):
            TaxPolicy(vat_rate=Decimal("1.5"))

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError):
            TaxPolicy(rent_retention_rate=Decimal("-0.01"))

    def test_float_rate_rejected(self):
        with pytest.raises(TypeError):
            TaxPolicy(vat_rate=0.13)
