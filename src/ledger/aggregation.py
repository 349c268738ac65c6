"""
Ledger aggregation: fold movement rows into per-warehouse kind totals.

The fold is a pandas group-by, so it is order independent: the same
rows in any order give the same totals.
"""

from typing import Iterable

import pandas as pd

from .movements import (
    ALL_KINDS,
    WAREHOUSE_COLUMNS,
    MovementKind,
    resolve_affected_warehouse_column,
    stored_kind_values,
)
from .parsers import DateParser, DateWindow, map_values, parse_quantity
from .quality import ReportDiagnostics

MOVEMENT_COLUMNS = [
    "id",
    "product_id",
    "source_warehouse_id",
    "dest_warehouse_id",
    "kind",
    "quantity",
    "occurred_at",
]

TOTAL_COLUMNS = ["product_id", "warehouse_id", "kind", "quantity"]

KindTotals = dict[MovementKind, float]


def as_id(value) -> str | None:
    """Identifiers compare as strings; 7, 7.0 and "7" are the same id."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or None


def movements_frame(
    rows: Iterable[dict],
    diagnostics: ReportDiagnostics | None = None,
    date_parser: DateParser | None = None,
) -> pd.DataFrame:
    """
    Ingest canonical movement rows into a clean DataFrame.

    - ids become strings
    - the same row id fetched by several queries is kept once
    - occurred_at becomes an aware UTC datetime
    - quantity becomes its absolute value (stored signs are unreliable)

    Rows with an unparseable timestamp or quantity, or with no warehouse
    on either side, are dropped and counted in ``diagnostics``.
    """
    diagnostics = diagnostics if diagnostics is not None else ReportDiagnostics()
    date_parser = date_parser or DateParser()

    df = pd.DataFrame(list(rows), columns=MOVEMENT_COLUMNS)
    for col in ["id", "product_id", "source_warehouse_id", "dest_warehouse_id"]:
        df[col] = map_values(df[col], as_id)

    # One stored transfer row is fetched by both transfer queries
    duplicated = df["id"].notna() & df.duplicated(subset=["id"])
    df = df[~duplicated].copy()

    df["kind"] = map_values(
        df["kind"], lambda v: None if v is None or pd.isna(v) else str(v).strip().lower()
    )

    df["occurred_at"] = date_parser.parse_series(df["occurred_at"])
    bad_time = df["occurred_at"].isna()
    diagnostics.skip_many("invalid_timestamp", df.loc[bad_time, "id"].tolist())
    df = df[~bad_time]

    quantities = map_values(df["quantity"], parse_quantity)
    bad_qty = quantities.isna()
    diagnostics.skip_many("invalid_quantity", df.loc[bad_qty, "id"].tolist())
    df = df[~bad_qty].assign(quantity=quantities[~bad_qty].astype(float).abs())

    no_warehouse = df["source_warehouse_id"].isna() & df["dest_warehouse_id"].isna()
    diagnostics.skip_many("missing_warehouse", df.loc[no_warehouse, "id"].tolist())
    df = df[~no_warehouse]

    return df.reset_index(drop=True)


def movement_totals_frame(
    movements: pd.DataFrame,
    kinds: Iterable[MovementKind | str] = ALL_KINDS,
    product_ids: Iterable[str] | None = None,
    warehouse_ids: Iterable[str] | None = None,
    window: DateWindow | None = None,
) -> pd.DataFrame:
    """
    Sum movement magnitudes per (product, warehouse, kind).

    Each logical kind reads its own affected warehouse column. A stored
    "transfer_in" row therefore counts as transfer_in at its destination
    and as transfer_out at its source, and never twice in one bucket.

    Args:
        movements: Frame from movements_frame()
        kinds: Logical kinds to include
        product_ids: Products to include (None = all)
        warehouse_ids: Affected warehouses to include (None = all)
        window: Half-open occurred_at window (None = unbounded)

    Returns DataFrame with columns product_id, warehouse_id, kind, quantity.
    """
    df = movements
    if product_ids is not None:
        df = df[df["product_id"].isin({as_id(p) for p in product_ids})]
    if window is not None:
        df = df.loc[[window.contains(ts) for ts in df["occurred_at"]]]

    warehouse_set = (
        {as_id(w) for w in warehouse_ids} if warehouse_ids is not None else None
    )

    pieces = []
    for kind in kinds:
        kind = MovementKind(kind)
        column = WAREHOUSE_COLUMNS[resolve_affected_warehouse_column(kind)]
        subset = df[df["kind"].isin(stored_kind_values(kind)) & df[column].notna()]
        if warehouse_set is not None:
            subset = subset[subset[column].isin(warehouse_set)]
        if subset.empty:
            continue
        pieces.append(
            pd.DataFrame({
                "product_id": subset["product_id"],
                "warehouse_id": subset[column],
                "kind": kind.value,
                "quantity": subset["quantity"],
            })
        )

    if not pieces:
        return pd.DataFrame(columns=TOTAL_COLUMNS)

    combined = pd.concat(pieces, ignore_index=True)
    return (
        combined.groupby(["product_id", "warehouse_id", "kind"], as_index=False)["quantity"]
        .sum()
    )


def totals_by_key(totals: pd.DataFrame) -> dict[tuple[str, str], KindTotals]:
    """Reshape a totals frame into {(product_id, warehouse_id): {kind: qty}}."""
    result: dict[tuple[str, str], KindTotals] = {}
    for row in totals.itertuples(index=False):
        bucket = result.setdefault((row.product_id, row.warehouse_id), {})
        kind = MovementKind(row.kind)
        bucket[kind] = bucket.get(kind, 0.0) + float(row.quantity)
    return result


def aggregate_movements(
    movements: Iterable[dict] | pd.DataFrame,
    kinds: Iterable[MovementKind | str] = ALL_KINDS,
    product_ids: Iterable[str] | None = None,
    warehouse_ids: Iterable[str] | None = None,
    window: DateWindow | None = None,
    diagnostics: ReportDiagnostics | None = None,
) -> dict[str, KindTotals]:
    """
    Fold movements into {warehouse_id: {kind: total}} across the product filter.

    Accepts raw canonical rows or a frame already built by movements_frame().
    """
    frame = (
        movements
        if isinstance(movements, pd.DataFrame)
        else movements_frame(movements, diagnostics)
    )
    totals = movement_totals_frame(frame, kinds, product_ids, warehouse_ids, window)

    result: dict[str, KindTotals] = {}
    for (_, warehouse_id), kind_totals in totals_by_key(totals).items():
        bucket = result.setdefault(warehouse_id, {})
        for kind, qty in kind_totals.items():
            bucket[kind] = bucket.get(kind, 0.0) + qty
    return result
