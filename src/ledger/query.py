"""
Report requests and the queries they translate into.

A report request names products, warehouses, movement kinds and a day
range. The builder turns it into one movement query per logical kind
(each filtering on that kind's affected warehouse column), a correction
query and a snapshot query. LedgerReader runs them page by page.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Iterable

from .aggregation import as_id
from .exceptions import ReportError
from .movements import (
    ALL_KINDS,
    MovementKind,
    MovementKindNormalizer,
    WarehouseColumn,
    resolve_affected_warehouse_column,
    stored_kind_values,
)
from .pagination import paginate
from .parsers import DateWindow, DayRange, parse_day
from .protocols import CorrectionStore, MovementStore, SnapshotStore
from .quality import ReportDiagnostics


class ReportType(str, Enum):
    """Report entry points. Each uses one opening stock policy."""

    MOVEMENT = "movement"
    AS_OF = "as_of"
    SKU_DETAIL = "sku_detail"


def _payload_value(payload: dict, *keys: str) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def _id_list(value, code: str) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        raise ReportError(code)
    ids = []
    for item in value:
        item_id = as_id(item)
        if item_id is not None and item_id not in ids:
            ids.append(item_id)
    if not ids:
        raise ReportError(code)
    return tuple(ids)


def _kind_list(value) -> tuple[MovementKind, ...]:
    if not isinstance(value, (list, tuple)) or not value:
        raise ReportError('EMPTY_MOVEMENTS')
    normalizer = MovementKindNormalizer()
    kinds = []
    for raw in value:
        kind = normalizer.normalize(raw)
        if kind is None:
            raise ReportError('UNKNOWN_MOVEMENT', movement=raw)
        if kind not in kinds:
            kinds.append(kind)
    return tuple(kinds)


@dataclass(frozen=True)
class ReportRequest:
    """A validated report request. Building one never touches a store."""

    report_type: ReportType
    product_ids: tuple[str, ...]
    warehouse_ids: tuple[str, ...]
    kinds: tuple[MovementKind, ...] = ALL_KINDS
    from_day: date | None = None
    to_day: date | None = None

    @classmethod
    def from_payload(
        cls,
        payload: dict,
        report_type: ReportType | str = ReportType.MOVEMENT,
        cutover_date: date | None = None,
        today: date | None = None,
    ) -> "ReportRequest":
        """
        Validate a raw request body.

        Accepts camelCase (productIds, warehouseIds, movements, fromDate,
        toDate) or snake_case keys.

        Raises:
            ReportError: on empty selections, unknown kinds, malformed
                dates, or a reversed range
        """
        report_type = ReportType(report_type)
        product_ids = _id_list(
            _payload_value(payload, "productIds", "product_ids"), 'EMPTY_PRODUCTS'
        )
        warehouse_ids = _id_list(
            _payload_value(payload, "warehouseIds", "warehouse_ids"), 'EMPTY_WAREHOUSES'
        )

        raw_kinds = _payload_value(payload, "movements", "kinds")
        if report_type is ReportType.MOVEMENT:
            kinds = _kind_list(raw_kinds)
        elif report_type is ReportType.AS_OF and raw_kinds:
            kinds = _kind_list(raw_kinds)
        else:
            kinds = ALL_KINDS

        from_day = parse_day(_payload_value(payload, "fromDate", "from_date"), "fromDate")
        to_day = parse_day(_payload_value(payload, "toDate", "to_date"), "toDate")

        if report_type is ReportType.AS_OF:
            from_day = cutover_date
            to_day = to_day or today or date.today()
        if report_type is ReportType.SKU_DETAIL and len(product_ids) != 1:
            raise ReportError('SINGLE_PRODUCT_REQUIRED', products=len(product_ids))

        if from_day and to_day and from_day > to_day:
            raise ReportError('INVALID_RANGE', from_date=from_day, to_date=to_day)

        return cls(
            report_type=report_type,
            product_ids=product_ids,
            warehouse_ids=warehouse_ids,
            kinds=kinds,
            from_day=from_day,
            to_day=to_day,
        )

    @property
    def window(self) -> DateWindow:
        """Half-open movement window covering the whole of to_day."""
        return DateWindow.from_days(self.from_day, self.to_day)

    @property
    def correction_range(self) -> DayRange:
        """Inclusive correction-date range for the same days."""
        return DayRange(self.from_day, self.to_day)


@dataclass(frozen=True)
class MovementQuery:
    """One store query: a logical kind read through its affected column."""

    kind: MovementKind
    stored_kinds: tuple[str, ...]
    product_ids: tuple[str, ...]
    warehouse_ids: tuple[str, ...] | None
    warehouse_column: WarehouseColumn
    window: DateWindow

    @property
    def label(self) -> str:
        return f"movements:{self.kind.value}"


@dataclass(frozen=True)
class CorrectionQuery:
    """
    Corrections for the requested products over a day range.

    Warehouses are not pushed down: correction references are resolved
    after the read, so the store cannot filter on them.
    """

    product_ids: tuple[str, ...]
    date_range: DayRange

    label = "corrections"


@dataclass(frozen=True)
class SnapshotQuery:
    product_ids: tuple[str, ...]
    warehouse_ids: tuple[str, ...]

    label = "snapshots"


class ReportQueryBuilder:
    """Translates a validated request into store queries."""

    def movement_queries(
        self,
        request: ReportRequest,
        window: DateWindow | None = None,
        kinds: Iterable[MovementKind] | None = None,
    ) -> list[MovementQuery]:
        """
        One query per logical kind, filtered on that kind's affected column.

        Args:
            request: The validated request
            window: Override the request window (opening replay reads the
                history before it)
            kinds: Override the requested kinds
        """
        window = window if window is not None else request.window
        kinds = request.kinds if kinds is None else tuple(kinds)
        return [
            MovementQuery(
                kind=MovementKind(kind),
                stored_kinds=stored_kind_values(kind),
                product_ids=request.product_ids,
                warehouse_ids=request.warehouse_ids,
                warehouse_column=resolve_affected_warehouse_column(kind),
                window=window,
            )
            for kind in kinds
        ]

    def correction_query(
        self, request: ReportRequest, date_range: DayRange | None = None
    ) -> CorrectionQuery:
        return CorrectionQuery(
            product_ids=request.product_ids,
            date_range=date_range if date_range is not None else request.correction_range,
        )

    def snapshot_query(self, request: ReportRequest) -> SnapshotQuery:
        return SnapshotQuery(
            product_ids=request.product_ids, warehouse_ids=request.warehouse_ids
        )


class LedgerReader:
    """
    Runs queries against the stores, one capped page loop per query.

    Truncation is recorded on the request's diagnostics; store errors
    propagate unchanged.
    """

    def __init__(
        self,
        movements: MovementStore,
        corrections: CorrectionStore,
        snapshots: SnapshotStore,
        page_size: int = 1000,
        max_pages: int = 500,
    ):
        self.movements = movements
        self.corrections = corrections
        self.snapshots = snapshots
        self.page_size = page_size
        self.max_pages = max_pages

    def _collect(self, fetch_page, label: str, diagnostics: ReportDiagnostics) -> list[dict]:
        result = paginate(fetch_page, self.page_size, self.max_pages, label)
        if result.truncated:
            diagnostics.mark_truncated(label)
        return result.rows

    def read_movements(
        self, queries: list[MovementQuery], diagnostics: ReportDiagnostics
    ) -> list[dict]:
        rows: list[dict] = []
        for query in queries:
            def fetch_page(offset: int, limit: int, query: MovementQuery = query) -> list[dict]:
                return self.movements.find_movements(
                    list(query.product_ids),
                    list(query.stored_kinds),
                    query.window,
                    warehouse_ids=list(query.warehouse_ids) if query.warehouse_ids else None,
                    warehouse_column=query.warehouse_column,
                    offset=offset,
                    limit=limit,
                )

            rows.extend(self._collect(fetch_page, query.label, diagnostics))
        return rows

    def read_corrections(
        self, query: CorrectionQuery, diagnostics: ReportDiagnostics
    ) -> list[dict]:
        def fetch_page(offset: int, limit: int) -> list[dict]:
            return self.corrections.find_corrections(
                list(query.product_ids), query.date_range, offset=offset, limit=limit
            )

        return self._collect(fetch_page, query.label, diagnostics)

    def read_snapshots(
        self, query: SnapshotQuery, diagnostics: ReportDiagnostics
    ) -> list[dict]:
        def fetch_page(offset: int, limit: int) -> list[dict]:
            return self.snapshots.find_snapshots(
                list(query.product_ids),
                list(query.warehouse_ids),
                offset=offset,
                limit=limit,
            )

        return self._collect(fetch_page, query.label, diagnostics)
