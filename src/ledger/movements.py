"""
Movement normalization: canonical kinds, aliases, and directionality.

Every stock event lands on exactly one warehouse per report. Which column
holds that warehouse (source or destination) depends only on the kind.
"""

from enum import Enum

import pandas as pd

from .parsers import map_values


class MovementKind(str, Enum):
    """Canonical movement kinds after alias resolution."""

    PURCHASE = "purchase"
    SALES = "sales"
    SALES_RETURNS = "sales_returns"
    PURCHASE_RETURN = "purchase_return"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    WASTAGES = "wastages"
    MANUFACTURING = "manufacturing"
    CONSUMPTION = "consumption"


class WarehouseColumn(str, Enum):
    """Which warehouse column a movement affects."""

    SOURCE = "source"
    DEST = "dest"


ALL_KINDS: tuple[MovementKind, ...] = tuple(MovementKind)

WAREHOUSE_COLUMNS = {
    WarehouseColumn.SOURCE: "source_warehouse_id",
    WarehouseColumn.DEST: "dest_warehouse_id",
}

# Stock arrives at the destination for these; everything else leaves the source
_DEST_KINDS = frozenset({
    MovementKind.PURCHASE,
    MovementKind.MANUFACTURING,
    MovementKind.TRANSFER_IN,
})

# Stored spellings accepted for each canonical kind
KIND_ALIASES: dict[MovementKind, tuple[str, ...]] = {
    MovementKind.PURCHASE: ("purchase", "purchases"),
    MovementKind.SALES: ("sales",),
    MovementKind.SALES_RETURNS: ("sales_returns",),
    MovementKind.PURCHASE_RETURN: ("purchase_return", "purchase_returns"),
    MovementKind.MANUFACTURING: ("manufacturing", "manufacture"),
    MovementKind.WASTAGES: ("wastages", "wastage"),
    MovementKind.CONSUMPTION: ("consumption", "consumptions"),
    MovementKind.TRANSFER_IN: ("transfer_in",),
    MovementKind.TRANSFER_OUT: ("transfer_out",),
}

# Stored values to query for each logical kind. The ERP sync writes
# "transfer_in" for both directions; outbound transfers are the same rows
# read through the source column.
_QUERY_ALIASES: dict[MovementKind, tuple[str, ...]] = {
    **KIND_ALIASES,
    MovementKind.TRANSFER_OUT: ("transfer_in",),
}

# Direction of each kind in the closing stock formula
KIND_SIGNS: dict[MovementKind, int] = {
    MovementKind.PURCHASE: 1,
    MovementKind.TRANSFER_IN: 1,
    MovementKind.MANUFACTURING: 1,
    MovementKind.SALES_RETURNS: 1,
    MovementKind.SALES: -1,
    MovementKind.PURCHASE_RETURN: -1,
    MovementKind.TRANSFER_OUT: -1,
    MovementKind.WASTAGES: -1,
    MovementKind.CONSUMPTION: -1,
}


def resolve_affected_warehouse_column(kind: MovementKind | str) -> WarehouseColumn:
    """
    Column holding the warehouse a movement of ``kind`` affects.

    Purchases, manufacturing and inbound transfers land on the destination.
    Everything else, including unknown kinds, hits the source.
    """
    try:
        canonical = MovementKind(kind)
    except ValueError:
        return WarehouseColumn.SOURCE
    if canonical in _DEST_KINDS:
        return WarehouseColumn.DEST
    return WarehouseColumn.SOURCE


def stored_kind_values(kind: MovementKind | str) -> tuple[str, ...]:
    """Stored movement_type values to request for a logical kind."""
    return _QUERY_ALIASES[MovementKind(kind)]


class MovementKindNormalizer:
    """
    Maps stored movement-type strings onto canonical kinds.

    Handles:
    - Case and whitespace noise ("Purchases " -> purchase)
    - Plural/singular drift between ERP versions (wastage/wastages)
    - Custom aliases for a specific upstream, via extra_aliases
    """

    def __init__(self, extra_aliases: dict[str, MovementKind] | None = None):
        self._lookup: dict[str, MovementKind] = {
            alias: kind
            for kind, aliases in KIND_ALIASES.items()
            for alias in aliases
        }
        for alias, kind in (extra_aliases or {}).items():
            self._lookup[alias.strip().lower()] = MovementKind(kind)

    def normalize(self, raw: str | None) -> MovementKind | None:
        """Canonical kind for a stored value, or None if unknown."""
        if raw is None or (not isinstance(raw, str) and pd.isna(raw)):
            return None
        return self._lookup.get(str(raw).strip().lower())

    def normalize_series(self, series: pd.Series) -> pd.Series:
        """Normalize an entire pandas Series of stored movement types."""
        return map_values(series, self.normalize)
