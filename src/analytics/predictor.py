"""Apply a trained model to an actual or hypothetical financial vector."""

from __future__ import annotations

import math
from typing import List, Mapping, Optional

from analytics.config import DEFAULT_CONFIG, AnalysisConfig
from analytics.models import (
    REASON_INVALID_INPUT,
    Contribution,
    ModelUnavailable,
    Prediction,
    PredictionResult,
    PredictionUnavailable,
    TrainingResult,
)
from constants import CONFIDENCE_LABELS


def confidence_from_r2(r_squared: float, config: AnalysisConfig = DEFAULT_CONFIG) -> str:
    low, moderate, high = CONFIDENCE_LABELS
    if r_squared > config.high_r2:
        return high
    if r_squared > config.moderate_r2:
        return moderate
    return low


def predict(
    model: TrainingResult,
    vector: Mapping[str, Optional[float]],
    config: Optional[AnalysisConfig] = None,
) -> PredictionResult:
    """predicted = intercept + Σ coefficientᵢ · valueᵢ

    Only the model's own predictors are read: extra keys are ignored and
    missing (or None) keys count as 0. The value is NOT clamped to the
    1-10 check-in scale; see Prediction.out_of_range.
    """
    config = config or DEFAULT_CONFIG
    if isinstance(model, ModelUnavailable):
        return PredictionUnavailable(model.target, model.reason, model.detail)

    values: List[float] = []
    for name in model.predictors:
        raw = vector.get(name)
        value = 0.0 if raw is None else float(raw)
        if not math.isfinite(value):
            return PredictionUnavailable(
                model.target, REASON_INVALID_INPUT, f"{name} is not a finite number ({raw!r})"
            )
        values.append(value)

    impacts = [c * v for c, v in zip(model.coefficients, values)]
    predicted = model.intercept
    for impact in impacts:
        predicted += impact

    total = sum(abs(i) for i in impacts)
    contributions = [
        Contribution(
            predictor=name,
            impact=impact,
            percent_contribution=(abs(impact) / total * 100) if total > 0 else 0.0,
        )
        for name, impact in zip(model.predictors, impacts)
    ]
    contributions.sort(key=lambda c: (-abs(c.impact), c.predictor))

    return Prediction(
        target=model.target,
        predicted_value=predicted,
        confidence=confidence_from_r2(model.r_squared, config),
        contributions=tuple(contributions),
    )
