"""
Tests for SequenceService.

Verifies:
- First allocation creates the counter and returns 1
- Values are strictly consecutive per (branch, series)
- Keys are independent
- Rolled-back allocations are not consumed
"""

import pytest

from dte_kernel.services.sequence_service import SequenceService


class TestNextValue:
    def test_first_value_is_one(self, session, catalog):
        service = SequenceService(session)
        assert service.next_value(catalog.main_branch_id, "FAC") == 1

    def test_consecutive(self, session, catalog):
        service = SequenceService(session)
        values = [service.next_value(catalog.main_branch_id, "FAC") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_series_independent(self, session, catalog):
        service = SequenceService(session)
        service.next_value(catalog.main_branch_id, "FAC")
        service.next_value(catalog.main_branch_id, "FAC")
        assert service.next_value(catalog.main_branch_id, "CCF") == 1

    def test_branches_independent(self, session, catalog):
        service = SequenceService(session)
        service.next_value(catalog.main_branch_id, "FAC")
        assert service.next_value(catalog.second_branch_id, "FAC") == 1

    def test_rollback_does_not_consume(self, database, catalog):
        first = database.session()
        try:
            assert SequenceService(first).next_value(catalog.main_branch_id, "FAC") == 1
            first.commit()
            assert SequenceService(first).next_value(catalog.main_branch_id, "FAC") == 2
            first.rollback()
        finally:
            first.close()

        second = database.session()
        try:
            assert SequenceService(second).next_value(catalog.main_branch_id, "FAC") == 2
            second.commit()
        finally:
            second.close()


class TestInspection:
    def test_peek_next_without_counter(self, session, catalog):
        assert SequenceService(session).peek_next(catalog.main_branch_id, "FAC") == 1

    def test_peek_next_does_not_allocate(self, session, catalog):
        service = SequenceService(session)
        service.next_value(catalog.main_branch_id, "FAC")
        assert service.peek_next(catalog.main_branch_id, "FAC") == 2
        assert service.peek_next(catalog.main_branch_id, "FAC") == 2
        assert service.next_value(catalog.main_branch_id, "FAC") == 2

    def test_list_for_branch(self, session, catalog):
        service = SequenceService(session)
        service.next_value(catalog.main_branch_id, "FAC")
        service.next_value(catalog.main_branch_id, "FAC")
        service.next_value(catalog.main_branch_id, "CCF")

        states = service.list_for_branch(catalog.main_branch_id)
        assert [(s.series, s.last_issued) for s in states] == [("CCF", 1), ("FAC", 2)]

    @pytest.mark.parametrize("series", ["FAC", "TCK"])
    def test_logs_allocation(self, session, catalog, captured_logs, series):
        SequenceService(session).next_value(catalog.main_branch_id, series)
        records = [r for r in captured_logs() if r["message"] == "sequence_allocated"]
        assert records[-1]["series"] == series
        assert records[-1]["value"] == 1

    def test_first_use_marks_counter_created(self, session, catalog, captured_logs):
        service = SequenceService(session)
        service.next_value(catalog.main_branch_id, "FAC")
        service.next_value(catalog.main_branch_id, "FAC")

        records = [r for r in captured_logs() if r["message"] == "sequence_allocated"]
        assert records[0]["counter_created"] is True
        assert "counter_created" not in records[1]
