"""
Stock Ledger Dashboard

A Streamlit dashboard for per-warehouse stock reports.
Run with: streamlit run app.py
"""

import sys
import logging
from pathlib import Path
from datetime import datetime, timezone

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

import streamlit as st
import pandas as pd
import plotly.graph_objects as go

from ledger import MovementKind, ReportError, ReportType, StockLedgerEngine, get_settings
from stores import ExportLoader, SqlStore

settings = get_settings()
# Report days are UTC days, same as the engine
today = datetime.now(timezone.utc).date()
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

# Page config
st.set_page_config(
    page_title=settings.APP_NAME,
    page_icon="📦",
    layout="wide",
)

st.title(f"📦 {settings.APP_NAME}")
st.caption(f"Movement history trusted from {settings.CUTOVER_DATE:%b %d, %Y}")


@st.cache_data
def load_exports():
    """Load exported ledger tables (cached for performance)."""
    return ExportLoader(Path(settings.DATA_DIR)).load_all()


def get_store():
    if settings.DATABASE_URL:
        return SqlStore(settings.DATABASE_URL), None
    exports = load_exports()
    return exports.store, exports


with st.spinner("Loading data..."):
    store, exports = get_store()

engine = StockLedgerEngine(
    store,
    store,
    store,
    resolver=store.resolver(settings.WAREHOUSE_TABLES)
    if isinstance(store, SqlStore)
    else store.resolver(),
    settings=settings,
)
warehouse_names = store.warehouse_names()

# --- Sidebar: report request ---
st.sidebar.header("Report")
report_label = st.sidebar.radio(
    "Report type",
    ["Movement report", "As-of stock", "SKU detail"],
)
report_type = {
    "Movement report": ReportType.MOVEMENT,
    "As-of stock": ReportType.AS_OF,
    "SKU detail": ReportType.SKU_DETAIL,
}[report_label]

product_names = exports.product_names() if exports is not None else {}
if product_names:
    product_ids = st.sidebar.multiselect(
        "Products",
        options=sorted(product_names),
        format_func=lambda p: f"{product_names[p]} ({p})",
        help="SKU detail takes exactly one product",
    )
else:
    product_text = st.sidebar.text_input(
        "Product ids (comma separated)",
        help="SKU detail takes exactly one product",
    )
    product_ids = [p.strip() for p in product_text.split(",") if p.strip()]
warehouse_ids = st.sidebar.multiselect(
    "Warehouses",
    options=sorted(warehouse_names),
    format_func=lambda w: warehouse_names.get(w, w),
)

kinds = [k.value for k in MovementKind]
if report_type is ReportType.MOVEMENT:
    kinds = st.sidebar.multiselect("Movement types", kinds, default=kinds)

payload = {
    "productIds": product_ids,
    "warehouseIds": warehouse_ids,
    "movements": kinds,
}
if report_type is ReportType.MOVEMENT:
    from_day = st.sidebar.date_input("From", value=settings.CUTOVER_DATE)
    to_day = st.sidebar.date_input("To", value=today)
    payload["fromDate"] = from_day.isoformat()
    payload["toDate"] = to_day.isoformat()
elif report_type is ReportType.AS_OF:
    payload["toDate"] = st.sidebar.date_input("As of", value=today).isoformat()
else:
    from_day = st.sidebar.date_input("From", value=today.replace(day=1))
    to_day = st.sidebar.date_input("To", value=today)
    payload["fromDate"] = from_day.isoformat()
    payload["toDate"] = to_day.isoformat()

if not payload["productIds"] or not warehouse_ids:
    st.info("Pick at least one product and one warehouse in the sidebar")
    st.stop()

try:
    report = engine.build_report(payload, report_type)
except ReportError as e:
    st.error(e.message)
    st.stop()

# --- Key Metrics Row ---
st.header("Key Metrics")
col1, col2, col3, col4 = st.columns(4)

with col1:
    st.metric("Opening Stock", f"{report.totals.opening_stock:,.0f}")

with col2:
    st.metric(
        "Closing Stock",
        f"{report.totals.closing_stock:,.0f}",
        delta=f"{report.totals.closing_stock - report.totals.opening_stock:,.0f}",
    )

with col3:
    st.metric(
        "Variance",
        f"{report.totals.variance:,.0f}",
        delta="Corrections applied" if report.totals.has_variance else "None",
        delta_color="off",
    )

with col4:
    st.metric(
        "Skipped Rows",
        f"{sum(report.skipped.values()):,}",
        delta="Truncated" if report.truncated else "Complete",
        delta_color="inverse" if report.truncated else "off",
    )

if report.truncated:
    st.warning("A query hit the page cap; these numbers may be incomplete")

st.caption(
    f"Opening policy: {report.opening_policy} · "
    f"{report.from_date or 'start'} → {report.to_date or 'now'}"
)

st.divider()

# --- Report Table ---
left_col, right_col = st.columns([2, 1])

with left_col:
    st.subheader("📋 Stock by Warehouse")
    table = report.to_frame(warehouse_names)
    st.dataframe(
        table,
        use_container_width=True,
        hide_index=True,
        column_config={
            label: st.column_config.NumberColumn(format="%.2f")
            for label in table.columns
            if label not in ("product_id", "Warehouse")
        },
    )
    st.download_button(
        "Download CSV",
        table.to_csv(index=False).encode("utf-8"),
        file_name=f"stock_report_{report.report_type}.csv",
        mime="text/csv",
    )

with right_col:
    st.subheader("📊 Closing Stock")
    fig_closing = go.Figure(
        data=[
            go.Bar(
                x=[warehouse_names.get(r.warehouse_id, r.warehouse_id) for r in report.rows],
                y=[r.closing_stock for r in report.rows],
                marker_color=[
                    "#e74c3c" if r.closing_stock < 0 else "#2ecc71" for r in report.rows
                ],
            )
        ]
    )
    fig_closing.update_layout(
        height=300,
        margin=dict(t=20, b=20, l=20, r=20),
        yaxis_title="Units",
    )
    st.plotly_chart(fig_closing, use_container_width=True)

    # Movement mix across all rows
    movement_totals = {
        kind.value: report.totals.kind_total(kind) for kind in report.kinds
    }
    movement_totals = {k: v for k, v in movement_totals.items() if v}
    if movement_totals:
        fig_mix = go.Figure(
            data=[
                go.Pie(
                    labels=list(movement_totals),
                    values=list(movement_totals.values()),
                    hole=0.4,
                )
            ]
        )
        fig_mix.update_layout(
            title="Movement Mix",
            height=250,
            margin=dict(t=40, b=20, l=20, r=20),
            legend=dict(orientation="h", yanchor="bottom", y=-0.3),
        )
        st.plotly_chart(fig_mix, use_container_width=True)

st.divider()

# --- Data Quality Section ---
st.subheader("🔧 Data Quality")

if report.issues:
    issues_df = pd.DataFrame([issue.model_dump() for issue in report.issues])
    issues_df["sample_values"] = issues_df["sample_values"].apply(", ".join)
    st.dataframe(issues_df, use_container_width=True, hide_index=True)
else:
    st.success("No rows skipped for this report")

if exports is not None:
    with st.expander("Source checks"):
        summaries = pd.DataFrame(
            [quality.summary() for quality in exports.quality_reports.values()]
        )
        st.dataframe(summaries, use_container_width=True, hide_index=True)
