"""
Tests for warehouse resolution and variance reconciliation.
"""

from datetime import date

import pytest

from ledger import DayRange, ReportDiagnostics
from ledger.reconciliation import (
    IdentityResolver,
    TableWarehouseResolver,
    VarianceReconciler,
)
from stores import normalize_correction


@pytest.fixture
def warehouse_rows():
    return [
        {"id": 1, "uuid": "uuid-main"},
        {"id": 2, "warehouse_uuid": "uuid-annex"},
    ]


@pytest.fixture
def canonical(correction):
    def build(*args, **kwargs):
        return normalize_correction(correction(*args, **kwargs))

    return build


class TestTableWarehouseResolver:
    """Tests for TableWarehouseResolver."""

    def test_canonical_id_resolves_to_itself(self, warehouse_rows):
        resolver = TableWarehouseResolver(warehouse_rows)
        assert resolver.resolve(1) == "1"
        assert resolver.resolve("2") == "2"

    def test_uuid_aliases(self, warehouse_rows):
        resolver = TableWarehouseResolver(warehouse_rows)
        assert resolver.resolve("uuid-main") == "1"
        assert resolver.resolve("uuid-annex") == "2"

    def test_unknown_is_unresolved(self, warehouse_rows):
        assert TableWarehouseResolver(warehouse_rows).resolve("uuid-gone") is None

    def test_manual_mapping_wins(self, warehouse_rows):
        resolver = TableWarehouseResolver(warehouse_rows, {"uuid-main": 2})
        assert resolver.resolve("uuid-main") == "2"

    def test_empty_table_is_identity(self):
        resolver = TableWarehouseResolver([])
        assert resolver.is_empty
        assert resolver.resolve("anything") == "anything"
        assert resolver.resolve(None) is None


class TestVarianceReconciler:
    """Tests for VarianceReconciler."""

    def test_sums_signed_variance(self, canonical):
        rows = [
            canonical(1, "W1", 5, "2025-07-02"),
            canonical(2, "W1", -2, "2025-07-03"),
            canonical(3, "W2", 9, "2025-07-03"),
        ]
        result = VarianceReconciler().reconcile(rows, "W1")

        assert result.total == 3.0
        assert result.has_variance is True
        assert result.matched == 2

    def test_zero_net_still_has_variance(self, canonical):
        rows = [
            canonical(1, "W1", 5, "2025-07-02"),
            canonical(2, "W1", -5, "2025-07-03"),
        ]
        result = VarianceReconciler().reconcile(rows, "W1")

        assert result.total == 0.0
        assert result.has_variance is True

    def test_no_rows_no_variance(self):
        result = VarianceReconciler().reconcile([], "W1")
        assert result.total == 0.0
        assert result.has_variance is False

    def test_inclusive_date_range(self, canonical):
        rows = [
            canonical(1, "W1", 1, "2025-06-30"),
            canonical(2, "W1", 2, "2025-07-01"),
            canonical(3, "W1", 4, "2025-07-31"),
            canonical(4, "W1", 8, "2025-08-01"),
        ]
        days = DayRange(date(2025, 7, 1), date(2025, 7, 31))
        assert VarianceReconciler().reconcile(rows, "W1", days).total == 6.0

    def test_uuid_references_resolve(self, canonical, warehouse_rows):
        rows = [
            canonical(1, "uuid-main", 3, "2025-07-02"),
            canonical(2, "1", 4, "2025-07-02"),
        ]
        reconciler = VarianceReconciler(TableWarehouseResolver(warehouse_rows))
        assert reconciler.reconcile(rows, "1").total == 7.0

    def test_unresolved_and_invalid_rows_are_counted(self, canonical, warehouse_rows):
        diagnostics = ReportDiagnostics()
        rows = [
            canonical(1, "uuid-gone", 3, "2025-07-02"),
            canonical(2, "1", "n/a", "2025-07-02"),
            canonical(3, "1", 2, "someday"),
            canonical(4, "1", 1, "2025-07-02"),
        ]
        reconciler = VarianceReconciler(TableWarehouseResolver(warehouse_rows))
        result = reconciler.reconcile(rows, "1", diagnostics=diagnostics)

        assert result.total == 1.0
        assert diagnostics.skipped["unresolved_warehouse"] == 1
        assert diagnostics.skipped["invalid_variance"] == 1
        assert diagnostics.skipped["invalid_correction_date"] == 1

    def test_other_warehouses_dropped_silently(self, canonical, warehouse_rows):
        diagnostics = ReportDiagnostics()
        rows = [canonical(1, "uuid-annex", 3, "2025-07-02")]
        reconciler = VarianceReconciler(TableWarehouseResolver(warehouse_rows))
        result = reconciler.reconcile(rows, "1", diagnostics=diagnostics)

        assert result.has_variance is False
        assert diagnostics.total_skipped == 0

    def test_reconcile_all_is_keyed_and_repeatable(self, canonical):
        rows = [
            canonical(1, "W1", 5, "2025-07-02", product="P"),
            canonical(2, "W1", 1, "2025-07-02", product="Q"),
            canonical(3, "W2", -2, "2025-07-02", product="P"),
        ]
        reconciler = VarianceReconciler(IdentityResolver())
        first = reconciler.reconcile_all(rows, ["P"], ["W1", "W2"])
        second = reconciler.reconcile_all(rows, ["P"], ["W1", "W2"])

        assert first == second
        assert set(first) == {("P", "W1"), ("P", "W2")}
        assert first[("P", "W2")].total == -2.0
