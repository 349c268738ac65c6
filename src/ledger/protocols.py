"""
Collaborator protocols: the engine's only data-access boundary.

The engine defines these; store adapters (in-memory, exported files, SQL)
implement them. Every store returns rows already normalized to the
canonical shapes below, so the engine never sees upstream column names or
nested join results.

Canonical rows:
    movement:   {id, product_id, source_warehouse_id, dest_warehouse_id,
                 kind, quantity, occurred_at}
    correction: {id, product_id, warehouse_ref, variance_quantity,
                 correction_date}
    snapshot:   {product_id, warehouse_id, quantity}
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .movements import WarehouseColumn
from .parsers import DateWindow, DayRange


@runtime_checkable
class MovementStore(Protocol):
    """Paginated access to the stock movement ledger."""

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
        """
        One page of movements.

        Args:
            product_ids: Products to include
            kinds: Stored movement_type values to include
            window: occurred_at in [window.start, window.end)
            warehouse_ids: Optional pushdown filter on warehouse_column
            warehouse_column: Column the warehouse filter applies to
            offset: Rows to skip
            limit: Maximum rows to return

        Returns:
            Rows ordered by occurred_at ascending, then id ascending
        """
        ...


@runtime_checkable
class CorrectionStore(Protocol):
    """Paginated access to manual stock corrections."""

    def find_corrections(
        self,
        product_ids: list[str],
        date_range: DayRange,
        offset: int = 0,
        limit: int = 1000,
    ) -> list[dict]:
        """
        One page of corrections with correction_date in the inclusive range.

        Returns:
            Rows ordered by correction_date ascending, then id ascending
        """
        ...


@runtime_checkable
class SnapshotStore(Protocol):
    """Paginated access to the base inventory snapshot."""

    def find_snapshots(
        self,
        product_ids: list[str],
        warehouse_ids: list[str],
        offset: int = 0,
        limit: int = 1000,
    ) -> list[dict]:
        """One page of snapshot rows, ordered by product_id then warehouse_id."""
        ...


@runtime_checkable
class WarehouseResolver(Protocol):
    """Translates a correction's warehouse reference into a canonical id."""

    def resolve(self, ref) -> str | None:
        """
        Args:
            ref: Warehouse reference as stored on a correction row

        Returns:
            Canonical warehouse id, or None when the reference is unknown
        """
        ...
