"""
Loader for exported ledger tables (CSV / Excel dumps of the synced database).

Expected files in the data directory:
- stock_movements.csv        id, product_id, warehouse_id, warehouse_dest_id,
                             movement_type, quantity, created_at
- stock_corrections.csv      id, product_id, warehouse_id (uuid or id),
                             variance_quantity, correction_date
- warehouse_inventory.xlsx   wh_id, product_id, quantity
  (or warehouse_inventory.csv)
- warehouses.csv             id, uuid, warehouse_uuid, name
- products.csv               optional; id, name

Identifier columns are read as text so "0042" and "42" never collapse.
"""

from dataclasses import dataclass
from pathlib import Path
import logging

import pandas as pd

from ledger.movements import MovementKindNormalizer
from ledger.parsers import DateParser, map_values, parse_correction_date
from ledger.quality import DataQualityChecker, DataQualityIssue, DataQualityReport

from .memory import InMemoryStore

logger = logging.getLogger("stockledger")

ID_COLUMNS = [
    "id",
    "product_id",
    "warehouse_id",
    "warehouse_dest_id",
    "wh_id",
    "uuid",
    "warehouse_uuid",
]


@dataclass
class LoadedExports:
    """Container for all loaded export tables."""

    movements: pd.DataFrame
    corrections: pd.DataFrame
    snapshots: pd.DataFrame
    warehouses: pd.DataFrame
    products: pd.DataFrame
    quality_reports: dict[str, DataQualityReport]

    @property
    def store(self) -> InMemoryStore:
        return InMemoryStore(
            movements=self.movements,
            corrections=self.corrections,
            snapshots=self.snapshots,
            warehouses=self.warehouses,
        )

    def product_names(self) -> dict[str, str]:
        """id -> display name from products.csv; empty when it was not exported."""
        if self.products.empty or "id" not in self.products.columns:
            return {}
        products = self.products.dropna(subset=["id"])
        names = products["name"] if "name" in products.columns else products["id"]
        return {
            str(pid).strip(): str(name) if pd.notna(name) else str(pid).strip()
            for pid, name in zip(products["id"], names)
        }


class ExportLoader:
    """
    Loads exported ledger tables and checks their quality.

    Export quirks handled:
    - Movement times with and without offsets or a "Z" suffix
    - Movement types in mixed case and plural/singular drift
    - Quantities stored with a sign (magnitudes are used)
    - Corrections filed against warehouse uuids instead of ids
    - The snapshot exported as Excel or as CSV
    """

    def __init__(self, data_dir: Path | str):
        self.data_dir = Path(data_dir)
        self.date_parser = DateParser()
        self.kind_normalizer = MovementKindNormalizer()

    def load_all(self) -> LoadedExports:
        """Load every table and run quality checks."""
        movements = self.load_movements()
        corrections = self.load_corrections()
        snapshots = self.load_snapshots()
        warehouses = self.load_warehouses()
        products = self.load_products()

        quality_reports = {
            "movements": self._check_movement_quality(movements),
            "corrections": self._check_correction_quality(corrections),
            "snapshots": self._check_snapshot_quality(snapshots),
        }

        logger.info(
            "exports.loaded",
            extra={
                "data_dir": str(self.data_dir),
                "movements": len(movements),
                "corrections": len(corrections),
                "snapshots": len(snapshots),
                "warehouses": len(warehouses),
            },
        )

        return LoadedExports(
            movements=movements,
            corrections=corrections,
            snapshots=snapshots,
            warehouses=warehouses,
            products=products,
            quality_reports=quality_reports,
        )

    def _read_csv(self, name: str, required: bool = True) -> pd.DataFrame:
        path = self.data_dir / name
        if not path.exists() and not required:
            return pd.DataFrame()
        return pd.read_csv(path, dtype={col: str for col in ID_COLUMNS})

    def load_movements(self) -> pd.DataFrame:
        """
        Load stock movements.

        Adds occurred_at_parsed and kind_normalized for quality checks;
        the raw columns are what the store serves.
        """
        df = self._read_csv("stock_movements.csv")
        df["occurred_at_parsed"] = self.date_parser.parse_series(df["created_at"])
        df["kind_normalized"] = self.kind_normalizer.normalize_series(df["movement_type"])
        return df

    def load_corrections(self) -> pd.DataFrame:
        df = self._read_csv("stock_corrections.csv", required=False)
        if "correction_date" in df.columns:
            df["correction_date_parsed"] = map_values(df["correction_date"], parse_correction_date)
        return df

    def load_snapshots(self) -> pd.DataFrame:
        """Base inventory snapshot; Excel preferred, CSV accepted."""
        xlsx = self.data_dir / "warehouse_inventory.xlsx"
        if xlsx.exists():
            df = pd.read_excel(xlsx, dtype={col: str for col in ID_COLUMNS})
        else:
            df = self._read_csv("warehouse_inventory.csv")
        df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]
        return df

    def load_warehouses(self) -> pd.DataFrame:
        return self._read_csv("warehouses.csv", required=False)

    def load_products(self) -> pd.DataFrame:
        return self._read_csv("products.csv", required=False)

    def _check_movement_quality(self, df: pd.DataFrame) -> DataQualityReport:
        """Run quality checks on the movement ledger."""
        checker = DataQualityChecker(
            "Stock Movements",
            required_columns=["id", "product_id", "movement_type", "created_at"],
        )
        checker.check_duplicates(["id"])
        checker.check_allowed_values("movement_type", self.kind_normalizer.normalize)
        checker.check_negative("quantity")
        checker.add_check(
            lambda d: self._check_unparsed(
                d, "created_at", "occurred_at_parsed", "unparsed_timestamp"
            )
        )

        def check_no_warehouse(d: pd.DataFrame) -> list[DataQualityIssue]:
            source = d.get("warehouse_id", pd.Series(index=d.index, dtype=object))
            dest = d.get("warehouse_dest_id", pd.Series(index=d.index, dtype=object))
            missing = source.isna() & dest.isna()
            count = int(missing.sum())
            if count > 0:
                return [
                    DataQualityIssue(
                        column="warehouse_id, warehouse_dest_id",
                        issue_type="missing_warehouse",
                        severity="warning",
                        count=count,
                        percentage=(count / len(d)) * 100,
                        sample_values=d.loc[missing, "id"].head(5).tolist(),
                        description=f"{count:,} movements have no warehouse on either side",
                    )
                ]
            return []

        checker.add_check(check_no_warehouse)
        return checker.run(df)

    def _check_correction_quality(self, df: pd.DataFrame) -> DataQualityReport:
        if df.columns.empty:
            # No corrections export
            return DataQualityReport(source_name="Stock Corrections", total_rows=0)
        checker = DataQualityChecker(
            "Stock Corrections",
            required_columns=["product_id", "warehouse_id", "variance_quantity"],
        )
        if "correction_date" in df.columns:
            checker.add_check(
                lambda d: self._check_unparsed(
                    d, "correction_date", "correction_date_parsed", "unparsed_date"
                )
            )
        return checker.run(df)

    def _check_snapshot_quality(self, df: pd.DataFrame) -> DataQualityReport:
        checker = DataQualityChecker(
            "Warehouse Inventory", required_columns=["wh_id", "product_id", "quantity"]
        )
        checker.check_duplicates(["wh_id", "product_id"], severity="critical")
        checker.check_negative("quantity", severity="warning")
        return checker.run(df)

    def _check_unparsed(
        self, df: pd.DataFrame, original_col: str, parsed_col: str, issue_type: str
    ) -> list[DataQualityIssue]:
        """Check for values that couldn't be parsed."""
        unparsed = df[original_col].notna() & df[parsed_col].isna()
        count = int(unparsed.sum())
        if count > 0:
            samples = df.loc[unparsed, original_col].head(5).tolist()
            return [
                DataQualityIssue(
                    column=original_col,
                    issue_type=issue_type,
                    severity="warning",
                    count=count,
                    percentage=(count / len(df)) * 100,
                    sample_values=samples,
                    description=f"{count:,} values couldn't be parsed",
                )
            ]
        return []
