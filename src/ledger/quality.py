"""
Data quality tracking for ledger sources and report runs.

Two layers:
- DataQualityChecker inspects a loaded source (movements, corrections,
  snapshot) and produces a DataQualityReport.
- ReportDiagnostics is the per-request accumulator the engine threads
  through one report: skipped rows and truncated queries.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Any

import pandas as pd


@dataclass
class DataQualityIssue:
    """A single data quality issue found in the data."""

    column: str
    issue_type: str  # e.g. "missing", "invalid_value", "duplicate", "skipped"
    severity: str  # "critical", "warning", "info"
    count: int
    percentage: float
    sample_values: list[Any] = field(default_factory=list)
    description: str = ""


@dataclass
class DataQualityReport:
    """Summary report of data quality for a single data source."""

    source_name: str
    total_rows: int
    issues: list[DataQualityIssue] = field(default_factory=list)

    @property
    def critical_issues(self) -> list[DataQualityIssue]:
        return [i for i in self.issues if i.severity == "critical"]

    @property
    def warning_issues(self) -> list[DataQualityIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def has_critical_issues(self) -> bool:
        return len(self.critical_issues) > 0

    def summary(self) -> dict:
        """Return a summary dict for display."""
        return {
            "source": self.source_name,
            "total_rows": self.total_rows,
            "critical": len(self.critical_issues),
            "warnings": len(self.warning_issues),
            "info": len([i for i in self.issues if i.severity == "info"]),
        }


def _percentage(count: int, total: int) -> float:
    return (count / total) * 100 if total else 0.0


class DataQualityChecker:
    """
    Quality checker for a loaded ledger source.

    Checks for common issues:
    - Missing values in required columns
    - Duplicate keys
    - Values outside an allowed set
    - Negative values where only magnitudes make sense

    Extend by adding custom checks via add_check().
    """

    def __init__(self, source_name: str, required_columns: list[str] | None = None):
        self.source_name = source_name
        self.required_columns = required_columns or []
        self._checks: list[Callable[[pd.DataFrame], list[DataQualityIssue]]] = []
        self.add_check(self._check_missing_values)

    def add_check(
        self, check_fn: Callable[[pd.DataFrame], list[DataQualityIssue]]
    ) -> "DataQualityChecker":
        """Add a custom check function. Returns self for chaining."""
        self._checks.append(check_fn)
        return self

    def _check_missing_values(self, df: pd.DataFrame) -> list[DataQualityIssue]:
        """Check required columns for missing values."""
        issues = []
        for col in self.required_columns:
            if col not in df.columns:
                issues.append(
                    DataQualityIssue(
                        column=col,
                        issue_type="missing_column",
                        severity="critical",
                        count=len(df),
                        percentage=100.0,
                        description=f"Column '{col}' is absent",
                    )
                )
                continue
            missing = int(df[col].isna().sum())
            if missing > 0:
                pct = _percentage(missing, len(df))
                severity = "critical" if pct > 20 else "warning" if pct > 5 else "info"
                issues.append(
                    DataQualityIssue(
                        column=col,
                        issue_type="missing",
                        severity=severity,
                        count=missing,
                        percentage=pct,
                        description=f"{missing:,} missing values ({pct:.1f}%)",
                    )
                )
        return issues

    def check_duplicates(
        self, key_columns: list[str], severity: str = "warning"
    ) -> "DataQualityChecker":
        """Add a duplicate check for the given columns."""

        def check(df: pd.DataFrame) -> list[DataQualityIssue]:
            if not set(key_columns) <= set(df.columns):
                return []
            dupes = int(df.duplicated(subset=key_columns, keep=False).sum())
            if dupes > 0:
                return [
                    DataQualityIssue(
                        column=", ".join(key_columns),
                        issue_type="duplicate",
                        severity=severity,
                        count=dupes,
                        percentage=_percentage(dupes, len(df)),
                        description=f"{dupes:,} duplicate rows on key columns",
                    )
                ]
            return []

        self._checks.append(check)
        return self

    def check_allowed_values(
        self,
        column: str,
        normalizer: Callable[[Any], Any],
        severity: str = "warning",
    ) -> "DataQualityChecker":
        """Flag values the normalizer cannot map (it returns None for them)."""

        def check(df: pd.DataFrame) -> list[DataQualityIssue]:
            if column not in df.columns:
                return []
            values = df[column].dropna()
            invalid_mask = values.apply(normalizer).isna()
            invalid = int(invalid_mask.sum())
            if invalid > 0:
                return [
                    DataQualityIssue(
                        column=column,
                        issue_type="invalid_value",
                        severity=severity,
                        count=invalid,
                        percentage=_percentage(invalid, len(df)),
                        sample_values=values[invalid_mask].unique()[:5].tolist(),
                        description=f"{invalid:,} unrecognized values",
                    )
                ]
            return []

        self._checks.append(check)
        return self

    def check_negative(
        self, column: str, severity: str = "info"
    ) -> "DataQualityChecker":
        """Flag negative values in a column that should hold magnitudes."""

        def check(df: pd.DataFrame) -> list[DataQualityIssue]:
            if column not in df.columns:
                return []
            values = pd.to_numeric(df[column], errors="coerce")
            negative = int((values < 0).sum())
            if negative > 0:
                return [
                    DataQualityIssue(
                        column=column,
                        issue_type="negative_value",
                        severity=severity,
                        count=negative,
                        percentage=_percentage(negative, len(df)),
                        sample_values=df.loc[values < 0, column].head(5).tolist(),
                        description=f"{negative:,} negative values (sign ignored)",
                    )
                ]
            return []

        self._checks.append(check)
        return self

    def run(self, df: pd.DataFrame) -> DataQualityReport:
        """Run all checks and return a quality report."""
        all_issues = []
        for check_fn in self._checks:
            all_issues.extend(check_fn(df))

        return DataQualityReport(
            source_name=self.source_name, total_rows=len(df), issues=all_issues
        )


@dataclass
class ReportDiagnostics:
    """
    Per-request accumulator for rows the engine could not use.

    Never shared between requests. The engine creates one per report and
    passes it explicitly to every stage that may skip rows.
    """

    skipped: Counter = field(default_factory=Counter)
    samples: dict[str, list[Any]] = field(default_factory=dict)
    truncated_queries: list[str] = field(default_factory=list)

    def skip(self, reason: str, record_id: Any = None) -> None:
        self.skipped[reason] += 1
        if record_id is not None:
            bucket = self.samples.setdefault(reason, [])
            if len(bucket) < 5:
                bucket.append(record_id)

    def skip_many(self, reason: str, record_ids: list[Any]) -> None:
        for record_id in record_ids:
            self.skip(reason, record_id)

    def mark_truncated(self, label: str) -> None:
        self.truncated_queries.append(label)

    @property
    def truncated(self) -> bool:
        return len(self.truncated_queries) > 0

    @property
    def total_skipped(self) -> int:
        return sum(self.skipped.values())

    def to_issues(self) -> list[DataQualityIssue]:
        """Render skips and truncations as quality issues."""
        issues = [
            DataQualityIssue(
                column="row",
                issue_type="skipped",
                severity="warning",
                count=count,
                percentage=0.0,
                sample_values=self.samples.get(reason, []),
                description=f"{count:,} rows skipped: {reason}",
            )
            for reason, count in sorted(self.skipped.items())
        ]
        for label in self.truncated_queries:
            issues.append(
                DataQualityIssue(
                    column="query",
                    issue_type="truncated",
                    severity="warning",
                    count=1,
                    percentage=0.0,
                    description=f"Page cap reached for {label}; results are incomplete",
                )
            )
        return issues
