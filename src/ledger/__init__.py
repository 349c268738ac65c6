# Stock ledger reconciliation engine
# Store-agnostic: adapters in the stores package feed it canonical rows

from .exceptions import ReportError
from .config import Settings, get_settings
from .movements import (
    MovementKind,
    MovementKindNormalizer,
    WarehouseColumn,
    resolve_affected_warehouse_column,
    stored_kind_values,
)
from .parsers import DateParser, DateWindow, DayRange
from .quality import DataQualityChecker, DataQualityReport, ReportDiagnostics
from .pagination import PageResult, paginate
from .aggregation import aggregate_movements, movements_frame
from .reconciliation import (
    IdentityResolver,
    TableWarehouseResolver,
    VarianceReconciler,
    VarianceResult,
)
from .opening import OpeningPolicy, OpeningStockCalculator, opening_stock
from .closing import closing_stock, total_balance
from .models import ReportResponse, WarehouseBalance
from .query import LedgerReader, ReportQueryBuilder, ReportRequest, ReportType
from .engine import StockLedgerEngine

__all__ = [
    "ReportError",
    "Settings",
    "get_settings",
    "MovementKind",
    "MovementKindNormalizer",
    "WarehouseColumn",
    "resolve_affected_warehouse_column",
    "stored_kind_values",
    "DateParser",
    "DateWindow",
    "DayRange",
    "DataQualityChecker",
    "DataQualityReport",
    "ReportDiagnostics",
    "PageResult",
    "paginate",
    "aggregate_movements",
    "movements_frame",
    "IdentityResolver",
    "TableWarehouseResolver",
    "VarianceReconciler",
    "VarianceResult",
    "OpeningPolicy",
    "OpeningStockCalculator",
    "opening_stock",
    "closing_stock",
    "total_balance",
    "ReportResponse",
    "WarehouseBalance",
    "LedgerReader",
    "ReportQueryBuilder",
    "ReportRequest",
    "ReportType",
    "StockLedgerEngine",
]
