"""
Tests for the ledger aggregator.
"""

from datetime import date

import pytest

from ledger import DateWindow, MovementKind, ReportDiagnostics
from ledger.aggregation import aggregate_movements, as_id, movements_frame
from stores import normalize_movement


@pytest.fixture
def canonical(movement):
    """Canonical movement rows, as stores return them."""

    def build(*args, **kwargs):
        return normalize_movement(movement(*args, **kwargs))

    return build


class TestAsId:
    """Identifiers compare as strings."""

    def test_numeric_forms_collapse(self):
        assert as_id(7) == as_id(7.0) == as_id("7") == "7"

    def test_missing(self):
        assert as_id(None) is None
        assert as_id(float("nan")) is None
        assert as_id("  ") is None


class TestAggregateMovements:
    """Tests for aggregate_movements()."""

    def test_buckets_by_affected_warehouse(self, canonical):
        rows = [
            canonical(1, "purchase", 20, "2025-07-01T10:00:00Z", source="SUP", dest="W1"),
            canonical(2, "sales", 5, "2025-07-01T11:00:00Z", source="W1"),
            canonical(3, "sales", 7, "2025-07-01T12:00:00Z", source="W2"),
        ]
        result = aggregate_movements(rows)

        assert result["W1"] == {MovementKind.PURCHASE: 20.0, MovementKind.SALES: 5.0}
        assert result["W2"] == {MovementKind.SALES: 7.0}
        assert "SUP" not in result

    def test_alias_transparency(self, canonical):
        plural = aggregate_movements(
            [canonical(1, "purchases", 10, "2025-07-01T10:00:00Z", dest="W1")]
        )
        singular = aggregate_movements(
            [canonical(1, "purchase", 10, "2025-07-01T10:00:00Z", dest="W1")]
        )
        assert plural == singular == {"W1": {MovementKind.PURCHASE: 10.0}}

    def test_stored_sign_is_ignored(self, canonical):
        rows = [canonical(1, "sales", -4, "2025-07-01T10:00:00Z", source="W1")]
        assert aggregate_movements(rows)["W1"][MovementKind.SALES] == 4.0

    def test_order_independent(self, canonical):
        rows = [
            canonical(i, kind, i, f"2025-07-0{i}T10:00:00Z", source="W1", dest="W1")
            for i, kind in enumerate(["purchase", "sales", "wastages", "consumption"], start=1)
        ]
        assert aggregate_movements(rows) == aggregate_movements(list(reversed(rows)))

    def test_transfer_row_counts_once_per_direction(self, canonical):
        rows = [canonical(1, "transfer_in", 8, "2025-07-01T10:00:00Z", source="W1", dest="W2")]
        result = aggregate_movements(rows)

        assert result["W2"] == {MovementKind.TRANSFER_IN: 8.0}
        assert result["W1"] == {MovementKind.TRANSFER_OUT: 8.0}

    def test_duplicate_ids_counted_once(self, canonical):
        row = canonical(1, "transfer_in", 8, "2025-07-01T10:00:00Z", source="W1", dest="W2")
        result = aggregate_movements([row, dict(row)])
        assert result["W2"][MovementKind.TRANSFER_IN] == 8.0

    def test_stored_transfer_out_is_never_read(self, canonical):
        rows = [canonical(1, "transfer_out", 8, "2025-07-01T10:00:00Z", source="W1", dest="W2")]
        assert aggregate_movements(rows) == {}

    def test_window_filter(self, canonical):
        rows = [
            canonical(1, "purchase", 1, "2025-07-31T23:59:59.999Z", dest="W1"),
            canonical(2, "purchase", 100, "2025-08-01T00:00:00Z", dest="W1"),
        ]
        window = DateWindow.from_days(date(2025, 7, 1), date(2025, 7, 31))
        assert aggregate_movements(rows, window=window) == {"W1": {MovementKind.PURCHASE: 1.0}}

    def test_kind_and_warehouse_filters(self, canonical):
        rows = [
            canonical(1, "purchase", 3, "2025-07-01T10:00:00Z", dest="W1"),
            canonical(2, "sales", 2, "2025-07-01T10:00:00Z", source="W1"),
            canonical(3, "purchase", 9, "2025-07-01T10:00:00Z", dest="W2"),
        ]
        result = aggregate_movements(rows, kinds=["purchase"], warehouse_ids=["W1"])
        assert result == {"W1": {MovementKind.PURCHASE: 3.0}}


class TestSkippedRows:
    """Rows the aggregator cannot use are dropped and counted."""

    def test_missing_both_warehouses(self, canonical):
        diagnostics = ReportDiagnostics()
        rows = [canonical(1, "sales", 2, "2025-07-01T10:00:00Z")]

        assert aggregate_movements(rows, diagnostics=diagnostics) == {}
        assert diagnostics.skipped["missing_warehouse"] == 1
        assert diagnostics.samples["missing_warehouse"] == ["1"]

    def test_other_direction_is_not_a_skip(self, canonical):
        diagnostics = ReportDiagnostics()
        # A purchase with only a source set has nothing to land on
        rows = [canonical(1, "purchase", 2, "2025-07-01T10:00:00Z", source="W1")]

        assert aggregate_movements(rows, diagnostics=diagnostics) == {}
        assert diagnostics.total_skipped == 0

    def test_invalid_timestamp_and_quantity(self, canonical):
        diagnostics = ReportDiagnostics()
        rows = [
            canonical(1, "sales", 2, "not-a-time", source="W1"),
            canonical(2, "sales", "two", "2025-07-01T10:00:00Z", source="W1"),
            canonical(3, "sales", 5, "2025-07-01T10:00:00Z", source="W1"),
        ]
        result = aggregate_movements(rows, diagnostics=diagnostics)

        assert result == {"W1": {MovementKind.SALES: 5.0}}
        assert diagnostics.skipped["invalid_timestamp"] == 1
        assert diagnostics.skipped["invalid_quantity"] == 1

    def test_null_quantity_counts_as_zero(self, canonical):
        rows = [canonical(1, "sales", None, "2025-07-01T10:00:00Z", source="W1")]
        frame = movements_frame(rows)

        assert len(frame) == 1
        assert aggregate_movements(frame) == {"W1": {MovementKind.SALES: 0.0}}
