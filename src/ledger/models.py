"""
Report response models.

Pydantic models give renderers and exporters a stable, documented shape.
All numbers are computed by the engine before a model is built; models
never recompute anything.
"""

from typing import Literal

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from .movements import MovementKind

# Balance field holding each movement kind's total
KIND_FIELDS: dict[MovementKind, str] = {
    MovementKind.PURCHASE: "purchases",
    MovementKind.PURCHASE_RETURN: "purchase_returns",
    MovementKind.SALES: "sales",
    MovementKind.SALES_RETURNS: "sales_returns",
    MovementKind.WASTAGES: "wastages",
    MovementKind.TRANSFER_IN: "transfer_in",
    MovementKind.TRANSFER_OUT: "transfer_out",
    MovementKind.MANUFACTURING: "manufacturing",
    MovementKind.CONSUMPTION: "consumption",
}

# Fields summed independently into the totals row
NUMERIC_FIELDS = ["opening_stock", *KIND_FIELDS.values(), "variance", "closing_stock"]

COLUMN_LABELS = {
    "warehouse": "Warehouse",
    "opening_stock": "Opening Stock",
    "purchases": "Purchases",
    "purchase_returns": "Purchase Returns",
    "sales": "Sales",
    "sales_returns": "Sales Returns",
    "wastages": "Wastages",
    "transfer_in": "Transfer In",
    "transfer_out": "Transfer Out",
    "manufacturing": "Manufacturing",
    "consumption": "Consumption",
    "variance": "Variance",
    "closing_stock": "Closing Stock",
}


class WarehouseBalance(BaseModel):
    """One warehouse's reconciled stock for a product over a report window."""

    model_config = ConfigDict(frozen=True)

    warehouse_id: str | None = Field(description="Warehouse id; None on the totals row")
    product_id: str | None = Field(default=None, description="Product id; None on the totals row")
    opening_stock: float = Field(default=0.0, description="Stock on hand just before the window")
    purchases: float = 0.0
    purchase_returns: float = 0.0
    sales: float = 0.0
    sales_returns: float = 0.0
    wastages: float = 0.0
    transfer_in: float = 0.0
    transfer_out: float = 0.0
    manufacturing: float = 0.0
    consumption: float = 0.0
    variance: float = Field(default=0.0, description="Net manual corrections inside the window")
    has_variance: bool = Field(
        default=False,
        description="True if any correction matched, even one netting to zero",
    )
    closing_stock: float = Field(default=0.0, description="Stock on hand at the end of the window")

    def kind_total(self, kind: MovementKind) -> float:
        return getattr(self, KIND_FIELDS[MovementKind(kind)])


class QualityIssue(BaseModel):
    """A data problem found while building a report."""

    issue_type: str
    severity: Literal["critical", "warning", "info"]
    count: int
    description: str
    sample_values: list[str] = Field(default_factory=list)


class ReportResponse(BaseModel):
    """Per-warehouse rows plus an independently summed totals row."""

    report_type: str
    opening_policy: str
    from_date: str | None = None
    to_date: str | None = None
    kinds: list[MovementKind]
    rows: list[WarehouseBalance]
    totals: WarehouseBalance
    truncated: bool = Field(
        default=False,
        description="A store query hit the page cap; numbers may be incomplete",
    )
    skipped: dict[str, int] = Field(default_factory=dict)
    issues: list[QualityIssue] = Field(default_factory=list)

    def to_frame(self, warehouse_names: dict[str, str] | None = None) -> pd.DataFrame:
        """
        Render rows plus the totals row as a display table.

        Args:
            warehouse_names: Optional id->name lookup for the Warehouse column
        """
        names = warehouse_names or {}
        records = []
        for balance in [*self.rows, self.totals]:
            record = balance.model_dump(include=set(NUMERIC_FIELDS))
            if balance.warehouse_id is None:
                record["warehouse"] = "Total"
            else:
                record["warehouse"] = names.get(balance.warehouse_id, balance.warehouse_id)
            record["product_id"] = balance.product_id
            records.append(record)

        frame = pd.DataFrame(records, columns=["product_id", "warehouse", *NUMERIC_FIELDS])
        return frame.rename(columns=COLUMN_LABELS)
