"""Weekly aggregation of raw transactions and wellbeing check-ins.

Both collections are bucketed by ISO week (Monday start). A week is kept
only when it has at least one transaction AND one wellbeing record; weeks
missing either side are dropped, never interpolated.

Same-day duplicate check-ins are all included in the weekly mean.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd

from analytics.config import DEFAULT_CONFIG, AnalysisConfig
from analytics.models import (
    FinancialAggregate,
    Transaction,
    WeeklyDataPoint,
    WellbeingAggregate,
    WellbeingRecord,
)
from constants import DEFAULT_CATEGORY_RULES, RESERVED_FINANCIAL_METRICS, WELLBEING_METRIC_NAMES

log = logging.getLogger("weekly_aggregator")

# name -> raw labels | predicate(raw_label) | None (catch-all)
CategoryRule = Union[None, Iterable[str], Callable[[str], bool]]
IncomeSpec = Union[None, float, Mapping[str, float]]


def week_key(value) -> str:
    """ISO week key, e.g. 2026-W07."""
    d = _to_date(value)
    year, week, _ = d.isocalendar()
    return f"{year}-W{week:02d}"


def week_start(key: str) -> dt.date:
    year, week = key.split("-W")
    return dt.date.fromisocalendar(int(year), int(week), 1)


def _to_date(value) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    return dt.date.fromisoformat(str(value)[:10])


# ─── Category vocabulary ───────────────────────────────────


class CategoryClassifier:
    """Maps raw transaction labels onto a caller-supplied vocabulary.

    Specific rules are tried in vocabulary order; the first catch-all
    rule (None) absorbs whatever is left. A single string rule is one
    label, not a set of characters. Without a catch-all, unmatched
    transactions still count toward total spending.
    """

    def __init__(self, categories: Mapping[str, CategoryRule]):
        self.names: Tuple[str, ...] = tuple(categories)
        self._rules: List[Tuple[str, Callable[[str], bool]]] = []
        self._catch_all: Optional[str] = None
        for name, rule in categories.items():
            if name in RESERVED_FINANCIAL_METRICS:
                raise ValueError(f"Category name {name!r} is reserved for an aggregate metric")
            if rule is None:
                if self._catch_all is None:
                    self._catch_all = name
                continue
            if callable(rule):
                self._rules.append((name, rule))
            else:
                if isinstance(rule, str):
                    rule = (rule,)
                labels = frozenset(str(label).strip().lower() for label in rule)
                self._rules.append((name, lambda raw, labels=labels: raw.strip().lower() in labels))

    def classify(self, raw: str) -> Optional[str]:
        for name, matches in self._rules:
            if matches(raw):
                return name
        return self._catch_all


# ─── Frames ────────────────────────────────────────────────


def _transactions_frame(transactions: Iterable[Transaction],
                        classifier: CategoryClassifier, k: float) -> pd.DataFrame:
    rows = []
    for t in transactions:
        raw = str(t.category or "")
        rows.append({
            "date": _to_date(t.date),
            "raw_category": raw,
            "category": classifier.classify(raw),
            "amount": float(t.amount),
        })
    if not rows:
        return pd.DataFrame(columns=["date", "week", "raw_category", "category", "amount", "is_anomaly"])

    df = pd.DataFrame(rows)
    # Deterministic summation order regardless of input order
    df = df.sort_values(["date", "raw_category", "amount"], kind="mergesort").reset_index(drop=True)
    df["week"] = df["date"].map(week_key)

    # Anomalies are judged against the FULL history of each raw label,
    # so cheap and expensive labels sharing one bucket keep separate baselines
    anomaly_key = df["raw_category"].str.strip().str.lower()
    grouped = df.groupby(anomaly_key)["amount"]
    threshold = grouped.transform("mean") + k * grouped.transform("std")
    df["is_anomaly"] = (df["amount"] > threshold).fillna(False)
    return df


def _wellbeing_frame(records: Iterable[WellbeingRecord]) -> pd.DataFrame:
    rows = []
    for rec in records:
        row = {"date": _to_date(rec.date)}
        for name in WELLBEING_METRIC_NAMES:
            row[name] = float(getattr(rec, name))
        rows.append(row)
    if not rows:
        return pd.DataFrame(columns=["date", "week", *WELLBEING_METRIC_NAMES])
    df = pd.DataFrame(rows)
    df = df.sort_values(["date", *WELLBEING_METRIC_NAMES], kind="mergesort").reset_index(drop=True)
    df["week"] = df["date"].map(week_key)
    return df


def _savings_rate(income: IncomeSpec, week: str, spending: float) -> Optional[float]:
    if income is None:
        return None
    if isinstance(income, Mapping):
        amount = income.get(week)
    else:
        amount = income
    if amount is None or float(amount) <= 0:
        return None
    amount = float(amount)
    return (amount - spending) / amount * 100


# ─── Entry point ───────────────────────────────────────────


def aggregate_weekly(
    transactions: Iterable[Transaction],
    wellbeing: Iterable[WellbeingRecord],
    categories: Optional[Mapping[str, CategoryRule]] = None,
    anomaly_k: Optional[float] = None,
    weekly_income: IncomeSpec = None,
    config: Optional[AnalysisConfig] = None,
) -> List[WeeklyDataPoint]:
    """Build one WeeklyDataPoint per ISO week, ascending by week.

    Parameters
    ----------
    categories : mapping, optional
        Category vocabulary (name -> inclusion rule). Defaults to
        entertainment/food/shopping/self-care/transport/other.
    anomaly_k : float, optional
        Overrides ``config.anomaly_k``.
    weekly_income : float or {week_key: income}, optional
        Enables the savings rate. Omitted weeks get no savings rate.

    Never raises for data conditions: empty input gives an empty list.
    """
    config = config or DEFAULT_CONFIG
    k = config.anomaly_k if anomaly_k is None else float(anomaly_k)
    classifier = CategoryClassifier(categories if categories is not None else DEFAULT_CATEGORY_RULES)

    tx = _transactions_frame(transactions, classifier, k)
    wb = _wellbeing_frame(wellbeing)
    if tx.empty or wb.empty:
        log.info("   Aggregator: %d transactions, %d check-ins -> no complete weeks", len(tx), len(wb))
        return []

    totals = tx.groupby("week")["amount"].sum()
    by_category = tx.dropna(subset=["category"]).groupby(["week", "category"])["amount"].sum()
    anomalies = tx.loc[tx["is_anomaly"].astype(bool)].groupby("week")["amount"].sum()
    means = wb.groupby("week")[list(WELLBEING_METRIC_NAMES)].mean()
    counts = wb.groupby("week").size()

    weeks = sorted(set(totals.index) & set(means.index))
    dropped = len(set(totals.index) | set(means.index)) - len(weeks)

    points: List[WeeklyDataPoint] = []
    for week in weeks:
        spending = float(totals[week])
        category_spending = tuple(
            (name, float(by_category.get((week, name), 0.0))) for name in classifier.names
        )
        financial = FinancialAggregate(
            total_spending=spending,
            category_spending=category_spending,
            anomaly_spending=float(anomalies.get(week, 0.0)),
            savings_rate=_savings_rate(weekly_income, week, spending),
        )
        row = means.loc[week]
        wellbeing_agg = WellbeingAggregate(
            **{name: float(row[name]) for name in WELLBEING_METRIC_NAMES},
            n_records=int(counts[week]),
        )
        points.append(WeeklyDataPoint(week, week_start(week), financial, wellbeing_agg))

    log.info("   Aggregator: %d complete weeks (%d incomplete dropped)", len(points), dropped)
    return points


def latest_financial_vector(points: List[WeeklyDataPoint]) -> Dict[str, float]:
    """Financial vector of the most recent week, the baseline for what-ifs."""
    if not points:
        return {}
    return points[-1].financial.as_vector()
