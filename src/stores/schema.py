"""
Upstream column names and row shapes.

The synced tables keep the ERP's column names (warehouse_id on a movement
is its source, wh_id on the snapshot, created_at for the movement time).
Everything is renamed onto the canonical rows the engine reads here, once,
at ingestion.

Joined reads may embed a related warehouse as an object, a one-element
list, an empty list or null, depending on the join. unwrap_related turns
all of those into a dict or None.
"""

from typing import Any

import pandas as pd

from ledger.aggregation import MOVEMENT_COLUMNS
from ledger.reconciliation import CORRECTION_COLUMNS

SNAPSHOT_COLUMNS = ["product_id", "warehouse_id", "quantity"]
WAREHOUSE_TABLE_COLUMNS = ["id", "uuid", "warehouse_uuid", "name"]

# Raw column -> canonical column
MOVEMENT_ALIASES = {
    "warehouse_id": "source_warehouse_id",
    "warehouse_dest_id": "dest_warehouse_id",
    "movement_type": "kind",
    "created_at": "occurred_at",
}

CORRECTION_ALIASES = {
    "warehouse_id": "warehouse_ref",
    "warehouse_uuid": "warehouse_ref",
}

SNAPSHOT_ALIASES = {
    "wh_id": "warehouse_id",
}

# Embedded relation -> (canonical column, key read from the related record)
MOVEMENT_RELATIONS = {
    "warehouse": ("source_warehouse_id", "id"),
    "warehouse_dest": ("dest_warehouse_id", "id"),
}

CORRECTION_RELATIONS = {
    "warehouse": ("warehouse_ref", "uuid"),
}


def unwrap_related(value: Any) -> dict | None:
    """
    Collapse a joined relation to a single record.

    Raises:
        ValueError: The join returned more than one related record
    """
    if value is None:
        return None
    if isinstance(value, dict):
        return value
    if isinstance(value, (list, tuple)):
        if len(value) == 0:
            return None
        if len(value) == 1 and isinstance(value[0], dict):
            return value[0]
        raise ValueError(f"Expected at most one related record, got {len(value)}")
    raise ValueError(f"Unexpected related value: {type(value).__name__}")


def _normalize_row(
    raw: dict,
    aliases: dict[str, str],
    relations: dict[str, tuple[str, str]],
    columns: list[str],
) -> dict:
    row: dict[str, Any] = {}
    for key, value in raw.items():
        if key in relations:
            continue
        canonical = aliases.get(key, key)
        # The first alias that carries a value wins
        if row.get(canonical) is None:
            row[canonical] = value

    for key, (column, related_key) in relations.items():
        if key not in raw or row.get(column) is not None:
            continue
        related = unwrap_related(raw[key])
        if related is not None:
            row[column] = related.get(related_key, related.get("id"))

    return {column: row.get(column) for column in columns}


def normalize_movement(raw: dict) -> dict:
    """Raw stock_movements row -> canonical movement row."""
    return _normalize_row(raw, MOVEMENT_ALIASES, MOVEMENT_RELATIONS, MOVEMENT_COLUMNS)


def normalize_correction(raw: dict) -> dict:
    """Raw stock_corrections row -> canonical correction row."""
    return _normalize_row(raw, CORRECTION_ALIASES, CORRECTION_RELATIONS, CORRECTION_COLUMNS)


def normalize_snapshot(raw: dict) -> dict:
    """Raw warehouse_inventory row -> canonical snapshot row."""
    return _normalize_row(raw, SNAPSHOT_ALIASES, {}, SNAPSHOT_COLUMNS)


def normalize_frame(
    df: pd.DataFrame, aliases: dict[str, str], columns: list[str]
) -> pd.DataFrame:
    """
    Rename raw export columns onto canonical ones.

    Columns the export lacks are added empty so downstream code can rely
    on the full canonical shape.
    """
    df = df.copy()
    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]
    renames = {
        raw: canonical
        for raw, canonical in aliases.items()
        if raw in df.columns and canonical not in df.columns
    }
    # Two raw columns may alias the same canonical one; keep the first
    seen = set()
    for raw in list(renames):
        if renames[raw] in seen:
            del renames[raw]
        else:
            seen.add(renames[raw])
    df = df.rename(columns=renames)
    for column in columns:
        if column not in df.columns:
            df[column] = None
    return df[columns]
