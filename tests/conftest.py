"""
Shared test configuration.

Adds src/ to sys.path so the flat modules (constants, correlation_engine)
and the analytics / pipeline packages import without installation, and
provides a factory for hand-built WeeklyDataPoints.
"""

import datetime as dt
import os
import sys

import pytest

_project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_src_dir = os.path.join(_project_root, "src")

if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)

from analytics.models import FinancialAggregate, WeeklyDataPoint, WellbeingAggregate  # noqa: E402
from constants import WELLBEING_METRIC_NAMES  # noqa: E402
from pipeline.aggregator import week_key  # noqa: E402

# Monday of ISO week 2026-W02
FIRST_MONDAY = dt.date(2026, 1, 5)


def build_point(i, categories=None, total=None, anomaly=0.0, savings_rate=None, **wellbeing):
    """WeeklyDataPoint for the i-th week after FIRST_MONDAY.

    Wellbeing metrics not given default to a constant 5.0, so they are
    degenerate unless a test varies them.
    """
    categories = dict(categories or {})
    start = FIRST_MONDAY + dt.timedelta(weeks=i)
    wb = {name: 5.0 for name in WELLBEING_METRIC_NAMES}
    wb.update({k: float(v) for k, v in wellbeing.items()})
    financial = FinancialAggregate(
        total_spending=float(total if total is not None else sum(categories.values())),
        category_spending=tuple((k, float(v)) for k, v in categories.items()),
        anomaly_spending=float(anomaly),
        savings_rate=savings_rate,
    )
    return WeeklyDataPoint(week_key(start), start, financial, WellbeingAggregate(**wb, n_records=7))


@pytest.fixture
def point_factory():
    return build_point
