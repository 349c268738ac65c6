"""
Tests for the closing stock formula and the totals row.
"""

import pytest

from ledger import MovementKind
from ledger.closing import build_balance, closing_stock, net_movement_effect, total_balance
from ledger.reconciliation import VarianceResult

K = MovementKind


class TestClosingStock:
    """Tests for closing_stock()."""

    def test_round_trip(self):
        totals = {kind: 0.0 for kind in MovementKind}
        totals[K.PURCHASE] = 50
        totals[K.SALES] = 30
        assert closing_stock(100, totals, 0) == 120

    def test_every_kind_direction(self):
        totals = {
            K.PURCHASE: 1,
            K.TRANSFER_IN: 2,
            K.MANUFACTURING: 4,
            K.SALES_RETURNS: 8,
            K.SALES: 16,
            K.PURCHASE_RETURN: 32,
            K.TRANSFER_OUT: 64,
            K.WASTAGES: 128,
            K.CONSUMPTION: 256,
        }
        assert closing_stock(1000, totals, 5) == 1000 + 15 - 496 + 5

    def test_missing_kinds_are_zero(self):
        assert closing_stock(10, {K.SALES: 4}) == 6

    def test_negative_is_not_clamped(self):
        assert closing_stock(0, {K.SALES: 5}) == -5

    def test_net_effect_matches_formula(self):
        totals = {K.PURCHASE: 20, K.SALES: 5, K.WASTAGES: 1}
        assert net_movement_effect(totals) == closing_stock(0, totals) == 14


class TestBalances:
    """Tests for build_balance() and total_balance()."""

    def test_build_balance(self):
        balance = build_balance(
            "P", "W1", 100, {K.PURCHASE: 20, K.SALES: 5}, VarianceResult(-3, True, 1)
        )

        assert balance.purchases == 20
        assert balance.sales == 5
        assert balance.consumption == 0
        assert balance.variance == -3
        assert balance.has_variance is True
        assert balance.closing_stock == 112

    def test_totals_sum_each_field(self):
        rows = [
            build_balance("P", "W1", 100, {K.PURCHASE: 20, K.SALES: 5}),
            build_balance("P", "W2", 7, {K.SALES: 10}, VarianceResult(0, True, 2)),
        ]
        totals = total_balance(rows)

        assert totals.warehouse_id is None
        assert totals.opening_stock == 107
        assert totals.purchases == 20
        assert totals.sales == 15
        assert totals.has_variance is True
        assert totals.closing_stock == pytest.approx(sum(r.closing_stock for r in rows))
        assert totals.closing_stock == closing_stock(
            totals.opening_stock,
            {kind: totals.kind_total(kind) for kind in MovementKind},
            totals.variance,
        )
