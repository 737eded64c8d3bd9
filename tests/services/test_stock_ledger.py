"""
Tests for StockLedger and StockSelector.

Verifies:
- IN / OUT / ADJUST arithmetic and the ADJUST absolute-level semantics
- Conservation: counter == signed sum of movement deltas
- SERVICE products never receive movements
- Negative stock is rejected unless backorders are enabled
- Movement history is newest first; low-stock report
"""

import pytest

from dte_kernel.domain.dtos import StockDirection
from dte_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    ProductNotFoundError,
    StockNotTrackedError,
)
from dte_kernel.models.product import Product
from dte_kernel.selectors.stock_selector import StockSelector
from dte_kernel.services.stock_ledger import StockLedger


@pytest.fixture
def ledger(session, test_actor_id, deterministic_clock):
    return StockLedger(session, test_actor_id, clock=deterministic_clock)


class TestAdjustStock:
    def test_in_adds(self, ledger, catalog):
        record = ledger.adjust_stock(catalog.coffee_id, StockDirection.IN, 20, "Receipt")
        assert record.delta == 20
        assert record.balance_after == 120
        assert ledger.current_stock(catalog.coffee_id) == 120

    def test_out_subtracts(self, ledger, catalog):
        record = ledger.adjust_stock(catalog.coffee_id, "out", 30, "Breakage")
        assert record.direction is StockDirection.OUT
        assert record.delta == -30
        assert ledger.current_stock(catalog.coffee_id) == 70

    def test_adjust_sets_absolute_level_down(self, ledger, catalog):
        record = ledger.adjust_stock(catalog.coffee_id, StockDirection.ADJUST, 40, "Count")
        assert record.quantity == 60
        assert record.delta == -60
        assert ledger.current_stock(catalog.coffee_id) == 40

    def test_adjust_sets_absolute_level_up(self, ledger, catalog):
        record = ledger.adjust_stock(catalog.sugar_id, StockDirection.ADJUST, 12, "Count")
        assert record.quantity == 7
        assert record.delta == 7
        assert ledger.current_stock(catalog.sugar_id) == 12

    def test_adjust_to_same_level_records_zero(self, ledger, catalog):
        record = ledger.adjust_stock(catalog.sugar_id, StockDirection.ADJUST, 5, "Count")
        assert record.quantity == 0
        assert record.delta == 0

    def test_out_beyond_stock_rejected(self, ledger, catalog, session):
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.adjust_stock(catalog.sugar_id, StockDirection.OUT, 6)
        assert exc_info.value.available == 5
        assert session.get(Product, catalog.sugar_id).stock_quantity == 5

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_in_rejected(self, ledger, catalog, quantity):
        with pytest.raises(InvalidQuantityError):
            ledger.adjust_stock(catalog.coffee_id, StockDirection.IN, quantity)

    def test_negative_adjust_target_rejected(self, ledger, catalog):
        with pytest.raises(InvalidQuantityError):
            ledger.adjust_stock(catalog.coffee_id, StockDirection.ADJUST, -1)

    def test_service_rejected(self, ledger, catalog):
        with pytest.raises(StockNotTrackedError):
            ledger.adjust_stock(catalog.delivery_id, StockDirection.IN, 1)

    def test_unknown_product(self, ledger, catalog):
        from uuid import uuid4

        with pytest.raises(ProductNotFoundError):
            ledger.adjust_stock(uuid4(), StockDirection.IN, 1)

    def test_backorder_mode_allows_negative(self, session, catalog, test_actor_id):
        ledger = StockLedger(session, test_actor_id, allow_negative_stock=True)
        record = ledger.adjust_stock(catalog.sugar_id, StockDirection.OUT, 8)
        assert record.balance_after == -3


class TestConservation:
    def test_counter_matches_ledger_after_mixed_movements(self, ledger, session, catalog):
        ledger.adjust_stock(catalog.coffee_id, StockDirection.IN, 15)
        ledger.adjust_stock(catalog.coffee_id, StockDirection.OUT, 40)
        ledger.adjust_stock(catalog.coffee_id, StockDirection.ADJUST, 33)
        ledger.adjust_stock(catalog.coffee_id, StockDirection.IN, 2)

        selector = StockSelector(session)
        assert selector.ledger_balance(catalog.coffee_id) == 35
        assert ledger.current_stock(catalog.coffee_id) == 35

    def test_balance_after_chains(self, ledger, session, catalog):
        ledger.adjust_stock(catalog.coffee_id, StockDirection.IN, 1)
        ledger.adjust_stock(catalog.coffee_id, StockDirection.OUT, 3)

        movements = list(reversed(StockSelector(session).movements(catalog.coffee_id)))
        running = 0
        for movement in movements:
            running += movement.delta
            assert movement.balance_after == running


class TestStockSelector:
    def test_movements_newest_first(self, ledger, session, catalog):
        ledger.adjust_stock(catalog.coffee_id, StockDirection.IN, 1, "first")
        ledger.adjust_stock(catalog.coffee_id, StockDirection.IN, 2, "second")

        notes = [m.note for m in StockSelector(session).movements(catalog.coffee_id)]
        assert notes == ["second", "first", "Opening stock"]

    def test_movements_limit(self, ledger, session, catalog):
        ledger.adjust_stock(catalog.coffee_id, StockDirection.IN, 1)
        assert len(StockSelector(session).movements(catalog.coffee_id, limit=1)) == 1

    def test_movements_unknown_product(self, session, catalog):
        from uuid import uuid4

        with pytest.raises(ProductNotFoundError):
            StockSelector(session).movements(uuid4())

    def test_service_has_no_movements(self, session, catalog):
        assert StockSelector(session).movements(catalog.delivery_id) == []
        assert StockSelector(session).ledger_balance(catalog.delivery_id) == 0

    def test_low_stock_only_active_goods(self, session, catalog):
        low = StockSelector(session).low_stock(threshold=10)
        assert [p.id for p in low] == [catalog.sugar_id]

    def test_low_stock_threshold(self, session, catalog):
        assert StockSelector(session).low_stock(threshold=4) == []
