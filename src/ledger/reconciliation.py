"""
Variance reconciliation: match manual stock corrections to warehouses.

Corrections are filed against warehouse references that do not always use
the movement ledger's key scheme (a uuid where movements use a numeric
id, for example). A resolver translates references before matching, the
same way records from two systems are matched on normalized identifiers.
"""

from dataclasses import dataclass
from typing import Any, Iterable

import pandas as pd

from .aggregation import as_id
from .parsers import DayRange, map_values, parse_correction_date, parse_quantity
from .protocols import WarehouseResolver
from .quality import ReportDiagnostics

CORRECTION_COLUMNS = [
    "id",
    "product_id",
    "warehouse_ref",
    "variance_quantity",
    "correction_date",
]


class IdentityResolver:
    """Resolver for stores whose corrections already use canonical ids."""

    def resolve(self, ref) -> str | None:
        return as_id(ref)


class TableWarehouseResolver:
    """
    Resolves warehouse references through a lookup table.

    Lookup rows look like {id, uuid, warehouse_uuid}; either alias column
    may be missing. Resolution order:
    1. Manual mappings (known problem cases)
    2. A canonical id resolves to itself
    3. A uuid alias resolves to its canonical id
    4. Anything else is unresolved (None)

    With an empty lookup table every reference resolves to itself: there
    is no second key scheme to translate from.

    Usage:
        resolver = TableWarehouseResolver(warehouse_rows)
        resolver.add_manual_mapping({"legacy-main": "1"})
        resolver.resolve("9f1c...")  # "1"
    """

    ALIAS_COLUMNS = ("uuid", "warehouse_uuid")

    def __init__(self, rows: Iterable[dict] = (), manual_mappings: dict[Any, Any] | None = None):
        self._known_ids: set[str] = set()
        self._aliases: dict[str, str] = {}
        self._manual_mappings: dict[str, str] = {}

        for row in rows:
            warehouse_id = as_id(row.get("id"))
            if warehouse_id is None:
                continue
            self._known_ids.add(warehouse_id)
            for column in self.ALIAS_COLUMNS:
                alias = as_id(row.get(column))
                if alias:
                    self._aliases[alias] = warehouse_id

        if manual_mappings:
            self.add_manual_mapping(manual_mappings)

    def add_manual_mapping(self, mappings: dict[Any, Any]) -> "TableWarehouseResolver":
        """Add manual reference->warehouse mappings."""
        for ref, warehouse_id in mappings.items():
            self._manual_mappings[as_id(ref)] = as_id(warehouse_id)
        return self

    @property
    def is_empty(self) -> bool:
        return not self._known_ids and not self._aliases and not self._manual_mappings

    def resolve(self, ref) -> str | None:
        key = as_id(ref)
        if key is None:
            return None
        if key in self._manual_mappings:
            return self._manual_mappings[key]
        if key in self._known_ids:
            return key
        if key in self._aliases:
            return self._aliases[key]
        if self.is_empty:
            return key
        return None


@dataclass(frozen=True)
class VarianceResult:
    """Net manual variance for one warehouse over a date range."""

    total: float = 0.0
    has_variance: bool = False
    matched: int = 0


NO_VARIANCE = VarianceResult()


def corrections_frame(rows: Iterable[dict]) -> pd.DataFrame:
    """Ingest canonical correction rows; ids as strings, dates as dates."""
    df = pd.DataFrame(list(rows), columns=CORRECTION_COLUMNS)
    for col in ["id", "product_id"]:
        df[col] = map_values(df[col], as_id)
    df["correction_date"] = map_values(df["correction_date"], parse_correction_date)
    df["variance_quantity"] = map_values(df["variance_quantity"], parse_quantity)
    return df


class VarianceReconciler:
    """
    Matches corrections to warehouses and sums their signed variance.

    Each correction row contributes once, to at most one warehouse.
    Reconciling is a pure read of the rows passed in, so repeated calls on
    the same rows return the same result.
    """

    def __init__(self, resolver: WarehouseResolver | None = None):
        self.resolver = resolver or IdentityResolver()

    def resolve_frame(
        self,
        corrections: Iterable[dict] | pd.DataFrame,
        warehouse_ids: Iterable[str],
        date_range: DayRange | None = None,
        diagnostics: ReportDiagnostics | None = None,
    ) -> pd.DataFrame:
        """
        Attach a resolved warehouse_id to each usable correction row.

        Dropped:
        - rows outside the date range
        - rows with no usable date or variance (counted)
        - rows whose reference resolves to nothing (counted)
        - rows that resolve to a warehouse outside the requested set
        """
        diagnostics = diagnostics if diagnostics is not None else ReportDiagnostics()
        df = (
            corrections.copy()
            if isinstance(corrections, pd.DataFrame)
            else corrections_frame(corrections)
        )

        bad_date = df["correction_date"].isna()
        diagnostics.skip_many("invalid_correction_date", df.loc[bad_date, "id"].tolist())
        df = df[~bad_date]

        if date_range is not None:
            df = df.loc[[date_range.contains(d) for d in df["correction_date"]]]

        bad_variance = df["variance_quantity"].isna()
        diagnostics.skip_many("invalid_variance", df.loc[bad_variance, "id"].tolist())
        df = df[~bad_variance].copy()

        df["warehouse_id"] = map_values(df["warehouse_ref"], self.resolver.resolve)
        unresolved = df["warehouse_id"].isna()
        diagnostics.skip_many("unresolved_warehouse", df.loc[unresolved, "id"].tolist())

        requested = {as_id(w) for w in warehouse_ids}
        df = df[~unresolved & df["warehouse_id"].isin(requested)]
        return df.assign(variance_quantity=df["variance_quantity"].astype(float))

    def reconcile(
        self,
        corrections: Iterable[dict] | pd.DataFrame,
        warehouse_id: str,
        date_range: DayRange | None = None,
        diagnostics: ReportDiagnostics | None = None,
    ) -> VarianceResult:
        """Net variance for one warehouse, across whatever products are passed in."""
        matched = self.resolve_frame(corrections, [warehouse_id], date_range, diagnostics)
        return VarianceResult(
            total=float(matched["variance_quantity"].sum()),
            has_variance=len(matched) > 0,
            matched=len(matched),
        )

    def reconcile_all(
        self,
        corrections: Iterable[dict] | pd.DataFrame,
        product_ids: Iterable[str],
        warehouse_ids: Iterable[str],
        date_range: DayRange | None = None,
        diagnostics: ReportDiagnostics | None = None,
    ) -> dict[tuple[str, str], VarianceResult]:
        """Net variance per (product_id, warehouse_id) with at least one match."""
        matched = self.resolve_frame(corrections, warehouse_ids, date_range, diagnostics)
        matched = matched[matched["product_id"].isin({as_id(p) for p in product_ids})]
        if matched.empty:
            return {}

        grouped = matched.groupby(["product_id", "warehouse_id"]).agg(
            total=("variance_quantity", "sum"),
            matched=("variance_quantity", "size"),
        )
        return {
            key: VarianceResult(
                total=float(row["total"]), has_variance=True, matched=int(row["matched"])
            )
            for key, row in grouped.iterrows()
        }
