"""
Closing stock: opening + inbound - outbound + variance, per warehouse.
"""

from typing import Mapping

from .movements import KIND_SIGNS, MovementKind
from .models import KIND_FIELDS, NUMERIC_FIELDS, WarehouseBalance
from .reconciliation import NO_VARIANCE, VarianceResult


def net_movement_effect(kind_totals: Mapping[MovementKind, float]) -> float:
    """Signed sum of movement magnitudes using the per-kind direction table."""
    return sum(
        KIND_SIGNS[MovementKind(kind)] * abs(qty) for kind, qty in kind_totals.items()
    )


def closing_stock(
    opening: float,
    kind_totals: Mapping[MovementKind, float],
    variance: float = 0.0,
) -> float:
    """
    closing = opening
            + purchases + transfer_in + manufacturing + sales_returns
            - sales - purchase_returns - transfer_out - wastages - consumption
            + variance

    Never clamped: a negative result points at bad upstream data and must
    stay visible.
    """
    totals = {MovementKind(k): v for k, v in kind_totals.items()}

    def t(kind: MovementKind) -> float:
        return totals.get(kind, 0.0)

    return (
        opening
        + t(MovementKind.PURCHASE)
        + t(MovementKind.TRANSFER_IN)
        + t(MovementKind.MANUFACTURING)
        + t(MovementKind.SALES_RETURNS)
        - t(MovementKind.SALES)
        - t(MovementKind.PURCHASE_RETURN)
        - t(MovementKind.TRANSFER_OUT)
        - t(MovementKind.WASTAGES)
        - t(MovementKind.CONSUMPTION)
        + variance
    )


def build_balance(
    product_id: str | None,
    warehouse_id: str,
    opening: float,
    kind_totals: Mapping[MovementKind, float],
    variance: VarianceResult = NO_VARIANCE,
) -> WarehouseBalance:
    """Assemble one warehouse row, computing its closing stock."""
    fields = {
        KIND_FIELDS[MovementKind(kind)]: float(qty) for kind, qty in kind_totals.items()
    }
    return WarehouseBalance(
        warehouse_id=warehouse_id,
        product_id=product_id,
        opening_stock=float(opening),
        variance=variance.total,
        has_variance=variance.has_variance,
        closing_stock=closing_stock(opening, kind_totals, variance.total),
        **fields,
    )


def total_balance(rows: list[WarehouseBalance]) -> WarehouseBalance:
    """
    Totals row: every field summed across rows on its own.

    closing_stock is the sum of the row closings, not a recomputation from
    the summed opening.
    """
    sums = {name: sum(getattr(row, name) for row in rows) for name in NUMERIC_FIELDS}
    return WarehouseBalance(
        warehouse_id=None,
        product_id=None,
        has_variance=any(row.has_variance for row in rows),
        **{name: float(value) for name, value in sums.items()},
    )
