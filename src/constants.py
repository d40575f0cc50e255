"""
Shared constants used across multiple modules.
Single source of truth for wellbeing metrics, their polarity, and the
default spending-category vocabulary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class WellbeingMetric:
    name: str
    label: str
    higher_is_better: bool = True


# Daily check-in metrics, all on a 1-10 scale.
# stress_level is the only one where a LOWER value is the better outcome.
WELLBEING_METRICS: Tuple[WellbeingMetric, ...] = (
    WellbeingMetric("overall_wellbeing", "Overall Wellbeing"),
    WellbeingMetric("sleep_quality", "Sleep Quality"),
    WellbeingMetric("physical_activity", "Physical Activity"),
    WellbeingMetric("social_time", "Social Time"),
    WellbeingMetric("diet_quality", "Diet Quality"),
    WellbeingMetric("stress_level", "Stress Level", higher_is_better=False),
)
WELLBEING_BY_NAME: Dict[str, WellbeingMetric] = {m.name: m for m in WELLBEING_METRICS}
WELLBEING_METRIC_NAMES: Tuple[str, ...] = tuple(m.name for m in WELLBEING_METRICS)

METRIC_SCALE_MIN = 1
METRIC_SCALE_MAX = 10

# Aggregate financial metrics (always present except savings_rate, which
# needs income). Category subtotals are named after the category itself.
TOTAL_SPENDING = "total_spending"
ANOMALY_SPENDING = "anomaly_spending"
SAVINGS_RATE = "savings_rate"
RESERVED_FINANCIAL_METRICS = (TOTAL_SPENDING, ANOMALY_SPENDING, SAVINGS_RATE)

# Default category vocabulary: name -> raw transaction labels it absorbs.
# None marks the catch-all bucket.
DEFAULT_CATEGORY_RULES = {
    "entertainment": ("entertainment", "movies", "games", "music", "streaming"),
    "food": ("food", "dining", "restaurants", "groceries", "coffee"),
    "shopping": ("shopping", "clothing", "electronics"),
    "self-care": ("self-care", "self care", "selfcare", "health", "fitness", "wellness"),
    "transport": ("transport", "transportation", "travel", "fuel", "rideshare"),
    "other": None,
}

# What-if scenarios offered when the caller supplies none.
DEFAULT_SCENARIOS = (
    ("Reduce Entertainment Spending", {"entertainment": -100.0}),
    ("Increase Self-Care Budget", {"self-care": 50.0}),
    ("Cut Back on Dining Out", {"food": -75.0}),
    ("Boost Savings Rate", {SAVINGS_RATE: 5.0}),
)

STRENGTH_LABELS = ("weak", "moderate", "strong")
CONFIDENCE_LABELS = ("low", "moderate", "high")


def wellbeing_label(name: str) -> str:
    metric = WELLBEING_BY_NAME.get(name)
    return metric.label if metric else name
