"""Immutable value objects passed between the analysis layers.

Every entity is created fresh per run. Collection-valued fields are tuples
so that two runs over identical input produce results that compare equal.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from constants import (
    ANOMALY_SPENDING,
    METRIC_SCALE_MAX,
    METRIC_SCALE_MIN,
    SAVINGS_RATE,
    TOTAL_SPENDING,
    WELLBEING_METRIC_NAMES,
)
from analytics.errors import (
    DegenerateInputError,
    ImpactAnalysisError,
    InsufficientDataError,
    InvalidMetricError,
)

# Reasons carried by the "unavailable" result variants
REASON_INSUFFICIENT_DATA = "insufficient_data"
REASON_NO_PREDICTORS = "no_predictors"
REASON_DEGENERATE = "degenerate_input"
REASON_INVALID_INPUT = "invalid_input"


# ─── Raw inputs ─────────────────────────────────────────────


@dataclass(frozen=True)
class Transaction:
    date: dt.date
    category: str
    amount: float


@dataclass(frozen=True)
class WellbeingRecord:
    date: dt.date
    overall_wellbeing: int
    sleep_quality: int
    physical_activity: int
    social_time: int
    diet_quality: int
    stress_level: int


# ─── Weekly aggregates ──────────────────────────────────────


@dataclass(frozen=True)
class FinancialAggregate:
    total_spending: float
    category_spending: Tuple[Tuple[str, float], ...]
    anomaly_spending: float
    savings_rate: Optional[float] = None

    def as_vector(self) -> Dict[str, float]:
        """Flatten into a financial vector keyed by metric name."""
        vector = {TOTAL_SPENDING: self.total_spending}
        vector.update(self.category_spending)
        vector[ANOMALY_SPENDING] = self.anomaly_spending
        if self.savings_rate is not None:
            vector[SAVINGS_RATE] = self.savings_rate
        return vector


@dataclass(frozen=True)
class WellbeingAggregate:
    overall_wellbeing: float
    sleep_quality: float
    physical_activity: float
    social_time: float
    diet_quality: float
    stress_level: float
    n_records: int = 1

    def value(self, name: str) -> float:
        if name not in WELLBEING_METRIC_NAMES:
            raise InvalidMetricError(name, WELLBEING_METRIC_NAMES)
        return getattr(self, name)

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in WELLBEING_METRIC_NAMES}


@dataclass(frozen=True)
class WeeklyDataPoint:
    week: str            # ISO "YYYY-Www"
    week_start: dt.date  # Monday of that ISO week
    financial: FinancialAggregate
    wellbeing: WellbeingAggregate

    def financial_value(self, name: str) -> Optional[float]:
        return self.financial.as_vector().get(name)

    def wellbeing_value(self, name: str) -> float:
        return self.wellbeing.value(name)


# ─── Correlation ────────────────────────────────────────────


@dataclass(frozen=True)
class CorrelationResult:
    financial_metric: str
    wellbeing_metric: str
    r: float
    strength: str     # weak | moderate | strong
    direction: str    # positive | negative
    confidence: str   # low | moderate | high (sample-size based)
    n: int
    p_value: float = 1.0


# ─── Regression ─────────────────────────────────────────────


@dataclass(frozen=True)
class RegressionModel:
    target: str
    predictors: Tuple[str, ...]
    coefficients: Tuple[float, ...]
    intercept: float
    r_squared: float
    adjusted_r_squared: Optional[float] = None
    n_samples: int = 0

    available = True

    @property
    def coefficient_map(self) -> Dict[str, float]:
        return dict(zip(self.predictors, self.coefficients))


@dataclass(frozen=True)
class ModelUnavailable:
    """A wellbeing metric for which no model could be trained."""

    target: str
    reason: str
    detail: str = ""

    available = False

    def error(self) -> ImpactAnalysisError:
        msg = f"No model for {self.target}: {self.detail or self.reason}"
        if self.reason == REASON_DEGENERATE:
            return DegenerateInputError(msg)
        return InsufficientDataError(msg)


TrainingResult = Union[RegressionModel, ModelUnavailable]


# ─── Prediction ─────────────────────────────────────────────


@dataclass(frozen=True)
class Contribution:
    predictor: str
    impact: float
    percent_contribution: float


@dataclass(frozen=True)
class Prediction:
    target: str
    predicted_value: float
    confidence: str   # low | moderate | high (R² based)
    contributions: Tuple[Contribution, ...]

    available = True

    @property
    def out_of_range(self) -> bool:
        """True when the value falls outside the check-in scale."""
        return not (METRIC_SCALE_MIN <= self.predicted_value <= METRIC_SCALE_MAX)


@dataclass(frozen=True)
class PredictionUnavailable:
    target: str
    reason: str
    detail: str = ""

    available = False


PredictionResult = Union[Prediction, PredictionUnavailable]


# ─── Scenarios ──────────────────────────────────────────────


@dataclass(frozen=True)
class ScenarioSpec:
    name: str
    deltas: Tuple[Tuple[str, float], ...]

    @classmethod
    def from_mapping(cls, name: str, deltas: Dict[str, float]) -> "ScenarioSpec":
        return cls(name, tuple(sorted((k, float(v)) for k, v in deltas.items())))

    @property
    def delta_map(self) -> Dict[str, float]:
        return dict(self.deltas)


@dataclass(frozen=True)
class ScenarioResult:
    name: str
    deltas: Tuple[Tuple[str, float], ...]
    predicted_deltas: Tuple[Tuple[str, float], ...]
    dominant_metric: Optional[str]
    recommendation: str
    unavailable_metrics: Tuple[str, ...] = ()

    @property
    def predicted_delta_map(self) -> Dict[str, float]:
        return dict(self.predicted_deltas)
