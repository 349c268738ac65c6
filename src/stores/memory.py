"""
In-memory store over pandas DataFrames.

Implements every store protocol the engine reads through, with the same
ordering and offset/limit paging a database-backed store gives. Used for
exported files, the dashboard, and tests.
"""

from typing import Iterable

import pandas as pd

from ledger.aggregation import MOVEMENT_COLUMNS, as_id
from ledger.movements import WAREHOUSE_COLUMNS, WarehouseColumn
from ledger.parsers import DateParser, DateWindow, DayRange, map_values, parse_correction_date
from ledger.reconciliation import CORRECTION_COLUMNS, TableWarehouseResolver

from .schema import (
    CORRECTION_ALIASES,
    MOVEMENT_ALIASES,
    SNAPSHOT_ALIASES,
    SNAPSHOT_COLUMNS,
    WAREHOUSE_TABLE_COLUMNS,
    normalize_frame,
)


def _frame(data, aliases: dict[str, str], columns: list[str]) -> pd.DataFrame:
    if data is None:
        return pd.DataFrame(columns=columns)
    df = data if isinstance(data, pd.DataFrame) else pd.DataFrame(list(data))
    return normalize_frame(df, aliases, columns)


def _id_order(ids: pd.Series) -> pd.Series:
    """Sort key for ids: numeric when every id is a number, so 2 sorts before 10."""
    numeric = pd.to_numeric(ids, errors="coerce")
    if numeric.notna().sum() == ids.notna().sum():
        return numeric
    return ids


def _records(df: pd.DataFrame, columns: list[str]) -> list[dict]:
    """Frame slice -> plain dicts, with NaN as None."""
    out = df[columns].astype(object)
    return out.where(out.notna(), None).to_dict("records")


class InMemoryStore:
    """
    Movement, correction and snapshot store backed by DataFrames.

    Usage:
        store = InMemoryStore(
            movements=[{"id": 1, "product_id": 42, "warehouse_dest_id": 1,
                        "movement_type": "purchase", "quantity": 20,
                        "created_at": "2025-07-01T10:00:00Z"}],
            snapshots=[{"product_id": 42, "wh_id": 1, "quantity": 100}],
        )
        engine = StockLedgerEngine.from_store(store)

    Raw upstream column names are accepted and renamed on construction.
    """

    def __init__(
        self,
        movements: pd.DataFrame | Iterable[dict] | None = None,
        corrections: pd.DataFrame | Iterable[dict] | None = None,
        snapshots: pd.DataFrame | Iterable[dict] | None = None,
        warehouses: pd.DataFrame | Iterable[dict] | None = None,
        date_parser: DateParser | None = None,
    ):
        date_parser = date_parser or DateParser()

        self.movements = _frame(movements, MOVEMENT_ALIASES, MOVEMENT_COLUMNS)
        for col in ["id", "product_id", "source_warehouse_id", "dest_warehouse_id"]:
            self.movements[col] = map_values(self.movements[col], as_id)
        self._movement_times = date_parser.parse_series(self.movements["occurred_at"])
        self._movement_kinds = map_values(
            self.movements["kind"],
            lambda v: None if v is None or pd.isna(v) else str(v).strip().lower(),
        )

        self.corrections = _frame(corrections, CORRECTION_ALIASES, CORRECTION_COLUMNS)
        for col in ["id", "product_id"]:
            self.corrections[col] = map_values(self.corrections[col], as_id)
        self._correction_dates = map_values(
            self.corrections["correction_date"], parse_correction_date
        )

        self.snapshots = _frame(snapshots, SNAPSHOT_ALIASES, SNAPSHOT_COLUMNS)
        for col in ["product_id", "warehouse_id"]:
            self.snapshots[col] = map_values(self.snapshots[col], as_id)

        self.warehouses = _frame(warehouses, {}, WAREHOUSE_TABLE_COLUMNS)
        for col in ["id", "uuid", "warehouse_uuid"]:
            self.warehouses[col] = map_values(self.warehouses[col], as_id)

    def find_movements(
        self,
        product_ids: list[str],
        kinds: list[str],
        window: DateWindow,
        warehouse_ids: list[str] | None = None,
        warehouse_column: WarehouseColumn | None = None,
        offset: int = 0,
        limit: int = 1000,
    ) -> list[dict]:
        df = self.movements
        mask = df["product_id"].isin({as_id(p) for p in product_ids})
        mask &= self._movement_kinds.isin({str(k).strip().lower() for k in kinds})
        if window.start is not None or window.end is not None:
            mask &= self._movement_times.map(
                lambda ts: ts is not None and not pd.isna(ts) and window.contains(ts)
            ).astype(bool)
        if warehouse_ids is not None and warehouse_column is not None:
            column = WAREHOUSE_COLUMNS[WarehouseColumn(warehouse_column)]
            mask &= df[column].isin({as_id(w) for w in warehouse_ids})

        page = (
            df[mask]
            .assign(
                _ts=pd.to_datetime(self._movement_times[mask], utc=True),
                _id=_id_order(df.loc[mask, "id"]),
            )
            .sort_values(["_ts", "_id"], na_position="last", kind="mergesort")
            .iloc[offset:offset + limit]
        )
        return _records(page, MOVEMENT_COLUMNS)

    def find_corrections(
        self,
        product_ids: list[str],
        date_range: DayRange,
        offset: int = 0,
        limit: int = 1000,
    ) -> list[dict]:
        df = self.corrections
        mask = df["product_id"].isin({as_id(p) for p in product_ids})
        if date_range.start is not None or date_range.end is not None:
            mask &= self._correction_dates.map(
                lambda d: d is not None and not pd.isna(d) and date_range.contains(d)
            ).astype(bool)

        page = (
            df[mask]
            .assign(
                _day=pd.to_datetime(self._correction_dates[mask]),
                _id=_id_order(df.loc[mask, "id"]),
            )
            .sort_values(["_day", "_id"], na_position="last", kind="mergesort")
            .iloc[offset:offset + limit]
        )
        return _records(page, CORRECTION_COLUMNS)

    def find_snapshots(
        self,
        product_ids: list[str],
        warehouse_ids: list[str],
        offset: int = 0,
        limit: int = 1000,
    ) -> list[dict]:
        df = self.snapshots
        mask = df["product_id"].isin({as_id(p) for p in product_ids})
        mask &= df["warehouse_id"].isin({as_id(w) for w in warehouse_ids})
        page = (
            df[mask]
            .sort_values(["product_id", "warehouse_id"], kind="mergesort")
            .iloc[offset:offset + limit]
        )
        return _records(page, SNAPSHOT_COLUMNS)

    def resolver(self, manual_mappings: dict | None = None) -> TableWarehouseResolver:
        """Warehouse resolver built from this store's warehouse table."""
        return TableWarehouseResolver(
            _records(self.warehouses, WAREHOUSE_TABLE_COLUMNS), manual_mappings
        )

    def warehouse_names(self) -> dict[str, str]:
        """id -> display name, for rendering."""
        names = self.warehouses.dropna(subset=["id"])
        return {
            row["id"]: str(row["name"]) if pd.notna(row["name"]) else row["id"]
            for _, row in names.iterrows()
        }
