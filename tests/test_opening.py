"""
Tests for opening stock policies.
"""

from datetime import date, datetime, timezone

import pytest

from ledger import DateWindow, DayRange, MovementKind, OpeningPolicy, ReportDiagnostics
from ledger.opening import (
    OpeningStockCalculator,
    opening_stock,
    replay_days,
    replay_window,
    snapshot_totals,
    uses_snapshot,
)
from ledger.query import LedgerReader
from stores import InMemoryStore

UTC = timezone.utc
CUTOVER = date(2025, 7, 1)


class TestUsesSnapshot:
    """Tests for the policy decision."""

    def test_cutover_on_or_before(self):
        assert uses_snapshot(datetime(2025, 7, 1, tzinfo=UTC), OpeningPolicy.CUTOVER, CUTOVER)
        assert uses_snapshot(datetime(2025, 6, 1, tzinfo=UTC), OpeningPolicy.CUTOVER, CUTOVER)

    def test_cutover_after_replays(self):
        assert not uses_snapshot(datetime(2025, 7, 2, tzinfo=UTC), OpeningPolicy.CUTOVER, CUTOVER)

    def test_replay_always_replays(self):
        assert not uses_snapshot(datetime(2025, 6, 1, tzinfo=UTC), OpeningPolicy.REPLAY, CUTOVER)

    def test_unbounded_start_is_snapshot(self):
        assert uses_snapshot(None, OpeningPolicy.REPLAY, CUTOVER)


class TestOpeningStockFormula:
    """Tests for opening_stock()."""

    def test_snapshot_unmodified(self):
        start = datetime(2025, 7, 1, tzinfo=UTC)
        prior = {MovementKind.PURCHASE: 50}
        assert opening_stock(100, prior, 9, start, OpeningPolicy.CUTOVER, CUTOVER) == 100

    def test_replay_adds_signed_history_and_variance(self):
        start = datetime(2025, 7, 10, tzinfo=UTC)
        prior = {MovementKind.PURCHASE: 10, MovementKind.SALES: 3}
        assert opening_stock(100, prior, -2, start, OpeningPolicy.REPLAY, CUTOVER) == 105


class TestSnapshotTotals:
    """Tests for snapshot_totals()."""

    def test_keyed_and_signed(self):
        rows = [
            {"product_id": "P", "warehouse_id": 1, "quantity": 100},
            {"product_id": "P", "warehouse_id": 2, "quantity": -4},
        ]
        assert snapshot_totals(rows) == {("P", "1"): 100.0, ("P", "2"): -4.0}

    def test_bad_quantity_skipped(self):
        diagnostics = ReportDiagnostics()
        rows = [{"product_id": "P", "warehouse_id": 1, "quantity": "lots"}]

        assert snapshot_totals(rows, diagnostics) == {}
        assert diagnostics.skipped["invalid_snapshot"] == 1


class TestOpeningStockCalculator:
    """Tests for OpeningStockCalculator against an in-memory store."""

    def _calculator(self, policy, movement, correction):
        store = InMemoryStore(
            movements=[
                movement(1, "purchase", 10, "2025-07-05T09:00:00Z", dest="W"),
                movement(2, "sales", 3, "2025-07-06T09:00:00Z", source="W"),
                movement(3, "sales", 50, "2025-07-10T09:00:00Z", source="W"),
            ],
            corrections=[
                correction(1, "W", -2, "2025-07-07"),
                correction(2, "W", 40, "2025-07-10"),
            ],
            snapshots=[{"product_id": "P", "wh_id": "W", "quantity": 100}],
        )
        reader = LedgerReader(store, store, store)
        return OpeningStockCalculator(reader, store.resolver(), policy, CUTOVER)

    def test_replay_before_window(self, movement, correction):
        calculator = self._calculator(OpeningPolicy.REPLAY, movement, correction)
        start = datetime(2025, 7, 10, tzinfo=UTC)

        # Window-day movement and correction are not part of the opening
        assert calculator.opening_stock("P", "W", start) == 105

    def test_cutover_window_uses_snapshot(self, movement, correction):
        calculator = self._calculator(OpeningPolicy.CUTOVER, movement, correction)
        start = datetime(2025, 7, 1, tzinfo=UTC)
        assert calculator.opening_stock("P", "W", start) == 100

    def test_missing_snapshot_opens_at_zero(self, movement, correction):
        calculator = self._calculator(OpeningPolicy.CUTOVER, movement, correction)
        start = datetime(2025, 7, 1, tzinfo=UTC)
        assert calculator.opening_stock("P", "OTHER", start) == 0


class TestReplayBounds:
    """Tests for replay_window() and replay_days()."""

    def test_cutover_replays_from_cutover(self):
        start = datetime(2025, 7, 10, tzinfo=UTC)

        window = replay_window(start, OpeningPolicy.CUTOVER, CUTOVER)
        days = replay_days(start, OpeningPolicy.CUTOVER, CUTOVER)

        assert window == DateWindow(start=datetime(2025, 7, 1, tzinfo=UTC), end=start)
        assert days == DayRange(start=CUTOVER, end=date(2025, 7, 9))

    def test_replay_goes_back_to_the_start(self):
        start = datetime(2025, 7, 10, tzinfo=UTC)

        assert replay_window(start, OpeningPolicy.REPLAY, CUTOVER) == DateWindow(end=start)
        assert replay_days(start, OpeningPolicy.REPLAY, CUTOVER) == DayRange(end=date(2025, 7, 9))


class TestCutoverHistory:
    """History before the cutover is already in the snapshot."""

    @pytest.fixture
    def store(self, movement, correction):
        return InMemoryStore(
            movements=[
                movement(1, "purchase", 50, "2025-06-15T09:00:00Z", dest="W"),
                movement(2, "purchase", 10, "2025-07-05T09:00:00Z", dest="W"),
                movement(3, "sales", 3, "2025-07-06T09:00:00Z", source="W"),
            ],
            corrections=[
                correction(1, "W", 7, "2025-06-20"),
                correction(2, "W", -2, "2025-07-07"),
            ],
            snapshots=[{"product_id": "P", "wh_id": "W", "quantity": 100}],
        )

    def _opening(self, store, policy, start):
        calculator = OpeningStockCalculator(
            LedgerReader(store, store, store), store.resolver(), policy, CUTOVER
        )
        return calculator.opening_stock("P", "W", start)

    def test_cutover_skips_pre_cutover_rows(self, store):
        start = datetime(2025, 7, 10, tzinfo=UTC)
        assert self._opening(store, OpeningPolicy.CUTOVER, start) == 100 + 10 - 3 - 2

    def test_replay_counts_everything(self, store):
        start = datetime(2025, 7, 10, tzinfo=UTC)
        assert self._opening(store, OpeningPolicy.REPLAY, start) == 100 + 50 + 10 - 3 + 7 - 2

    def test_cutover_openings_chain_day_to_day(self, store):
        openings = [
            self._opening(store, OpeningPolicy.CUTOVER, datetime(2025, 7, day, tzinfo=UTC))
            for day in range(1, 10)
        ]
        # Each day's opening differs from the last only by that day's activity
        assert openings == [100, 100, 100, 100, 100, 110, 107, 105, 105]
