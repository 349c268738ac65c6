"""
Pytest fixtures for stock ledger tests.
"""

from datetime import date

import pytest

from ledger import Settings, StockLedgerEngine
from stores import InMemoryStore


@pytest.fixture
def settings():
    """Default settings, ignoring any local .env."""
    return Settings(_env_file=None)


@pytest.fixture
def cutover():
    return date(2025, 7, 1)


@pytest.fixture
def movement():
    """Build a raw stock_movements row."""

    def build(id, kind, quantity, created_at, source=None, dest=None, product="P"):
        return {
            "id": id,
            "product_id": product,
            "warehouse_id": source,
            "warehouse_dest_id": dest,
            "movement_type": kind,
            "quantity": quantity,
            "created_at": created_at,
        }

    return build


@pytest.fixture
def correction():
    """Build a raw stock_corrections row."""

    def build(id, warehouse, variance, correction_date, product="P"):
        return {
            "id": id,
            "product_id": product,
            "warehouse_id": warehouse,
            "variance_quantity": variance,
            "correction_date": correction_date,
        }

    return build


@pytest.fixture
def make_engine(settings):
    """Engine over an in-memory store built from raw rows."""

    def build(movements=(), corrections=(), snapshots=(), warehouses=(), **overrides):
        store = InMemoryStore(
            movements=list(movements),
            corrections=list(corrections),
            snapshots=list(snapshots),
            warehouses=list(warehouses),
        )
        engine_settings = settings.model_copy(update=overrides) if overrides else settings
        return StockLedgerEngine.from_store(store, settings=engine_settings)

    return build


@pytest.fixture
def all_kinds():
    return [
        "purchase",
        "purchase_return",
        "sales",
        "sales_returns",
        "wastages",
        "transfer_in",
        "transfer_out",
        "manufacturing",
        "consumption",
    ]
