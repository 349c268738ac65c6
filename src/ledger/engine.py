"""
StockLedgerEngine: builds per-warehouse stock reports from the stores.

Three report types share one pipeline:

    validate -> opening stock -> movements in window -> corrections in
    window -> closing stock per (product, warehouse) -> totals row

They differ only in how the request is completed (as_of fixes the start
date, sku_detail forces one product and all kinds) and in the opening
policy each one is configured with.
"""

from datetime import datetime, timezone
import logging

from .aggregation import movement_totals_frame, movements_frame, totals_by_key
from .closing import build_balance, total_balance
from .config import Settings, get_settings
from .models import QualityIssue, ReportResponse, WarehouseBalance
from .opening import OpeningPolicy, OpeningStockCalculator
from .protocols import CorrectionStore, MovementStore, SnapshotStore, WarehouseResolver
from .quality import ReportDiagnostics
from .query import LedgerReader, ReportQueryBuilder, ReportRequest, ReportType
from .reconciliation import NO_VARIANCE, IdentityResolver, VarianceReconciler

logger = logging.getLogger("stockledger")


class StockLedgerEngine:
    """
    Report entry point for renderers (the dashboard, exports, an API).

    Usage:
        store = ExportLoader("data/exports").load_all().store
        engine = StockLedgerEngine.from_store(store)
        report = engine.movement_report({
            "productIds": ["42"],
            "warehouseIds": ["1", "2"],
            "movements": ["purchase", "sales"],
            "fromDate": "2025-07-01",
            "toDate": "2025-07-31",
        })
        report.totals.closing_stock

    Nothing is cached between calls: every report reads the stores again
    and gets its own diagnostics.
    """

    def __init__(
        self,
        movements: MovementStore,
        corrections: CorrectionStore,
        snapshots: SnapshotStore,
        resolver: WarehouseResolver | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.resolver = resolver or IdentityResolver()
        self.reader = LedgerReader(
            movements,
            corrections,
            snapshots,
            page_size=self.settings.PAGE_SIZE,
            max_pages=self.settings.MAX_PAGES,
        )
        self.builder = ReportQueryBuilder()
        self.reconciler = VarianceReconciler(self.resolver)

    @classmethod
    def from_store(cls, store, settings: Settings | None = None) -> "StockLedgerEngine":
        """Engine over one store implementing all three store protocols."""
        resolver = store.resolver() if hasattr(store, "resolver") else None
        return cls(store, store, store, resolver=resolver, settings=settings)

    def policy_for(self, report_type: ReportType | str) -> OpeningPolicy:
        return {
            ReportType.MOVEMENT: self.settings.MOVEMENT_REPORT_POLICY,
            ReportType.AS_OF: self.settings.AS_OF_REPORT_POLICY,
            ReportType.SKU_DETAIL: self.settings.SKU_DETAIL_POLICY,
        }[ReportType(report_type)]

    def movement_report(self, payload: dict) -> ReportResponse:
        """Selected movement kinds over an optional day range."""
        return self.build_report(payload, ReportType.MOVEMENT)

    def as_of_report(self, payload: dict) -> ReportResponse:
        """Stock from the cutover date up to toDate (default today, UTC)."""
        return self.build_report(payload, ReportType.AS_OF)

    def sku_detail_report(self, payload: dict) -> ReportResponse:
        """One product, every requested warehouse, all movement kinds."""
        return self.build_report(payload, ReportType.SKU_DETAIL)

    def build_report(
        self, payload: dict, report_type: ReportType | str = ReportType.MOVEMENT
    ) -> ReportResponse:
        """
        Validate a request and build its report.

        Raises:
            ReportError: The request is invalid (no store is touched)

        Store errors propagate unchanged; there is no partial report.
        """
        request = ReportRequest.from_payload(
            payload,
            report_type,
            cutover_date=self.settings.CUTOVER_DATE,
            today=datetime.now(timezone.utc).date(),
        )
        return self.run(request)

    def run(self, request: ReportRequest) -> ReportResponse:
        """Build the report for an already validated request."""
        policy = self.policy_for(request.report_type)
        diagnostics = ReportDiagnostics()

        logger.info(
            "report.start",
            extra={
                "report_type": request.report_type.value,
                "policy": policy.value,
                "products": len(request.product_ids),
                "warehouses": len(request.warehouse_ids),
                "from_date": str(request.from_day),
                "to_date": str(request.to_day),
            },
        )

        calculator = OpeningStockCalculator(
            self.reader,
            self.resolver,
            policy,
            self.settings.CUTOVER_DATE,
            builder=self.builder,
        )
        openings = calculator.compute(request, diagnostics)

        movement_rows = self.reader.read_movements(
            self.builder.movement_queries(request), diagnostics
        )
        kind_totals = totals_by_key(
            movement_totals_frame(
                movements_frame(movement_rows, diagnostics),
                request.kinds,
                request.product_ids,
                request.warehouse_ids,
                request.window,
            )
        )

        correction_rows = self.reader.read_corrections(
            self.builder.correction_query(request), diagnostics
        )
        variances = self.reconciler.reconcile_all(
            correction_rows,
            request.product_ids,
            request.warehouse_ids,
            request.correction_range,
            diagnostics,
        )

        rows = []
        for product_id in request.product_ids:
            for warehouse_id in request.warehouse_ids:
                key = (product_id, warehouse_id)
                totals = kind_totals.get(key, {})
                rows.append(
                    build_balance(
                        product_id,
                        warehouse_id,
                        openings.get(key, 0.0),
                        {kind: totals.get(kind, 0.0) for kind in request.kinds},
                        variances.get(key, NO_VARIANCE),
                    )
                )

        response = ReportResponse(
            report_type=request.report_type.value,
            opening_policy=policy.value,
            from_date=request.from_day.isoformat() if request.from_day else None,
            to_date=request.to_day.isoformat() if request.to_day else None,
            kinds=list(request.kinds),
            rows=rows,
            totals=total_balance(rows),
            truncated=diagnostics.truncated,
            skipped=dict(diagnostics.skipped),
            issues=self._issues(rows, diagnostics),
        )

        logger.info(
            "report.done",
            extra={
                "report_type": request.report_type.value,
                "rows": len(rows),
                "closing_stock": str(response.totals.closing_stock),
                "skipped": diagnostics.total_skipped,
                "truncated": diagnostics.truncated,
            },
        )
        return response

    def _issues(
        self, rows: list[WarehouseBalance], diagnostics: ReportDiagnostics
    ) -> list[QualityIssue]:
        issues = [
            QualityIssue(
                issue_type=issue.issue_type,
                severity=issue.severity,
                count=issue.count,
                description=issue.description,
                sample_values=[str(v) for v in issue.sample_values],
            )
            for issue in diagnostics.to_issues()
        ]

        # Reported, never clamped
        negative = [row for row in rows if row.closing_stock < 0]
        if negative:
            issues.append(
                QualityIssue(
                    issue_type="negative_closing_stock",
                    severity="critical",
                    count=len(negative),
                    description=(
                        f"{len(negative)} warehouse rows close below zero; "
                        "check for missing inbound movements or corrections"
                    ),
                    sample_values=[f"{row.product_id}/{row.warehouse_id}" for row in negative[:5]],
                )
            )
        return issues
