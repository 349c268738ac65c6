"""
Opening stock: the quantity on hand just before a report window starts.

Two named policies exist because movement history before the cutover
date is not trusted:

- cutover: a window starting on or before the cutover date opens at the
  raw snapshot. A later window adds only what happened between the
  cutover and the window start, so adjacent windows chain.
- replay: snapshot, plus the signed effect of every movement before the
  window, plus every correction dated before it.

Each report type uses exactly one policy (see Settings).
"""

from datetime import date, datetime
from enum import Enum
from typing import Iterable, Mapping
import logging

import pandas as pd

from .aggregation import KindTotals, as_id, movement_totals_frame, movements_frame, totals_by_key
from .closing import net_movement_effect
from .movements import ALL_KINDS
from .parsers import DateWindow, DayRange, day_start, map_values, parse_quantity
from .protocols import WarehouseResolver
from .query import LedgerReader, ReportQueryBuilder, ReportRequest, ReportType
from .quality import ReportDiagnostics
from .reconciliation import VarianceReconciler

logger = logging.getLogger("stockledger")


class OpeningPolicy(str, Enum):
    CUTOVER = "cutover"
    REPLAY = "replay"


def uses_snapshot(
    window_start: datetime | None, policy: OpeningPolicy, cutover_date: date
) -> bool:
    """
    True when the opening is the raw snapshot, with nothing replayed.

    An unbounded window (no start) always opens at the snapshot: there is
    no history before it to replay.
    """
    if window_start is None:
        return True
    if OpeningPolicy(policy) is OpeningPolicy.REPLAY:
        return False
    return window_start <= day_start(cutover_date)


def replay_window(
    window_start: datetime | None, policy: OpeningPolicy, cutover_date: date
) -> DateWindow:
    """
    Movements replayed onto the snapshot for a window starting at ``window_start``.

    The snapshot is the stock at the cutover instant, so the cutover policy
    replays only what happened since then. Replay goes back to the start
    of the ledger.
    """
    if OpeningPolicy(policy) is OpeningPolicy.CUTOVER:
        return DateWindow(start=day_start(cutover_date), end=window_start)
    return DateWindow.before(window_start)


def replay_days(
    window_start: datetime | None, policy: OpeningPolicy, cutover_date: date
) -> DayRange:
    """Correction days replayed onto the snapshot; same bounds as replay_window."""
    prior = DayRange.before(window_start)
    if OpeningPolicy(policy) is OpeningPolicy.CUTOVER:
        return DayRange(start=cutover_date, end=prior.end)
    return prior


def opening_stock(
    snapshot_qty: float,
    prior_totals: Mapping,
    prior_variance: float,
    window_start: datetime | None,
    policy: OpeningPolicy,
    cutover_date: date,
) -> float:
    """
    Opening stock for one (product, warehouse).

    Args:
        snapshot_qty: Base inventory snapshot quantity (0 if none)
        prior_totals: {kind: total} for the replayed movements
        prior_variance: Net variance of the replayed corrections
        window_start: First instant of the window (None = unbounded)
        policy: Opening policy for this report type
        cutover_date: Movement history before this day is not trusted
    """
    if uses_snapshot(window_start, policy, cutover_date):
        return float(snapshot_qty)
    return float(snapshot_qty) + net_movement_effect(prior_totals) + float(prior_variance)


def snapshot_totals(
    rows: Iterable[dict], diagnostics: ReportDiagnostics | None = None
) -> dict[tuple[str, str], float]:
    """Snapshot quantity per (product_id, warehouse_id). Quantities keep their sign."""
    diagnostics = diagnostics if diagnostics is not None else ReportDiagnostics()
    df = pd.DataFrame(list(rows), columns=["product_id", "warehouse_id", "quantity"])
    for col in ["product_id", "warehouse_id"]:
        df[col] = map_values(df[col], as_id)
    df["quantity"] = map_values(df["quantity"], parse_quantity)

    bad = df["quantity"].isna() | df["product_id"].isna() | df["warehouse_id"].isna()
    diagnostics.skip_many(
        "invalid_snapshot",
        [f"{p}/{w}" for p, w in zip(df.loc[bad, "product_id"], df.loc[bad, "warehouse_id"])],
    )
    df = df[~bad]
    if df.empty:
        return {}

    grouped = df.assign(quantity=df["quantity"].astype(float)).groupby(
        ["product_id", "warehouse_id"]
    )["quantity"].sum()
    return {key: float(qty) for key, qty in grouped.items()}


class OpeningStockCalculator:
    """
    Computes opening stock for every requested (product, warehouse) pair.

    Usage:
        calculator = OpeningStockCalculator(reader, resolver, OpeningPolicy.REPLAY, cutover)
        openings = calculator.compute(request, diagnostics)
        openings[("42", "1")]  # 115.0
    """

    def __init__(
        self,
        reader: LedgerReader,
        resolver: WarehouseResolver | None = None,
        policy: OpeningPolicy = OpeningPolicy.CUTOVER,
        cutover_date: date = date(2025, 7, 1),
        builder: ReportQueryBuilder | None = None,
    ):
        self.reader = reader
        self.reconciler = VarianceReconciler(resolver)
        self.policy = OpeningPolicy(policy)
        self.cutover_date = cutover_date
        self.builder = builder or ReportQueryBuilder()

    def compute(
        self,
        request: ReportRequest,
        diagnostics: ReportDiagnostics,
        window_start: datetime | None = None,
    ) -> dict[tuple[str, str], float]:
        """
        Opening stock keyed by (product_id, warehouse_id).

        Args:
            request: Validated ReportRequest
            diagnostics: Per-request skip/truncation accumulator
            window_start: Override the request's window start

        Every requested pair gets a value; pairs with no snapshot open at 0
        plus whatever is replayed.
        """
        if window_start is None:
            window_start = request.window.start

        snapshots = snapshot_totals(
            self.reader.read_snapshots(self.builder.snapshot_query(request), diagnostics),
            diagnostics,
        )

        prior: dict[tuple[str, str], KindTotals] = {}
        prior_variance = {}
        replay = not uses_snapshot(window_start, self.policy, self.cutover_date)
        if replay:
            prior_window = replay_window(window_start, self.policy, self.cutover_date)
            rows = self.reader.read_movements(
                self.builder.movement_queries(request, window=prior_window, kinds=ALL_KINDS),
                diagnostics,
            )
            totals = movement_totals_frame(
                movements_frame(rows, diagnostics),
                ALL_KINDS,
                request.product_ids,
                request.warehouse_ids,
                prior_window,
            )
            prior = totals_by_key(totals)

            prior_range = replay_days(window_start, self.policy, self.cutover_date)
            corrections = self.reader.read_corrections(
                self.builder.correction_query(request, prior_range), diagnostics
            )
            prior_variance = self.reconciler.reconcile_all(
                corrections,
                request.product_ids,
                request.warehouse_ids,
                prior_range,
                diagnostics,
            )

        logger.debug(
            "opening.computed",
            extra={
                "policy": self.policy.value,
                "replay": replay,
                "window_start": window_start.isoformat() if window_start else None,
            },
        )

        result = {}
        for product_id in request.product_ids:
            for warehouse_id in request.warehouse_ids:
                key = (product_id, warehouse_id)
                variance = prior_variance.get(key)
                result[key] = opening_stock(
                    snapshots.get(key, 0.0),
                    prior.get(key, {}),
                    variance.total if variance else 0.0,
                    window_start,
                    self.policy,
                    self.cutover_date,
                )
        return result

    def opening_stock(
        self, product_id, warehouse_id, window_start: datetime | None
    ) -> float:
        """Opening stock for a single (product, warehouse) pair."""
        request = ReportRequest(
            report_type=ReportType.MOVEMENT,
            product_ids=(as_id(product_id),),
            warehouse_ids=(as_id(warehouse_id),),
        )
        openings = self.compute(request, ReportDiagnostics(), window_start=window_start)
        return openings[(as_id(product_id), as_id(warehouse_id))]
