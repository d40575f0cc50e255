"""Ordinary least-squares models: wellbeing metric ~ financial predictors.

    target = β₀ + Σ βᵢ·xᵢ + ε

Solved via np.linalg.lstsq, but only after the design matrix passes an
explicit rank check and a condition-number check on its column-scaled
form. Collinear or constant predictors therefore give a typed
ModelUnavailable instead of silently unstable coefficients.

Reports R² = 1 − SS_res / SS_tot and the adjusted form

    R²_adj = 1 − [(1 − R²)(n − 1)] / (n − p − 1)

since raw R² with n≈10, p=3 flatters the fit.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from analytics.config import DEFAULT_CONFIG, AnalysisConfig
from analytics.errors import InvalidMetricError
from analytics.models import (
    REASON_DEGENERATE,
    REASON_INSUFFICIENT_DATA,
    REASON_NO_PREDICTORS,
    CorrelationResult,
    ModelUnavailable,
    RegressionModel,
    TrainingResult,
    WeeklyDataPoint,
)
from constants import RESERVED_FINANCIAL_METRICS, WELLBEING_METRIC_NAMES
from correlation_engine import ZERO_VARIANCE_EPS, CorrelationEngine, discover_financial_metrics

log = logging.getLogger("regression")


def _design(points: Sequence[WeeklyDataPoint], target: str,
            predictors: Sequence[str]) -> Tuple[np.ndarray, np.ndarray]:
    """Rows of predictor values plus target, skipping weeks with a gap."""
    rows: List[List[float]] = []
    ys: List[float] = []
    for p in points:
        vector = p.financial.as_vector()
        if any(vector.get(name) is None for name in predictors):
            continue
        rows.append([float(vector[name]) for name in predictors])
        ys.append(p.wellbeing.value(target))
    x = np.array(rows, dtype=np.float64).reshape(len(rows), len(predictors))
    return x, np.array(ys, dtype=np.float64)


def train_model(
    points: Sequence[WeeklyDataPoint],
    target: str,
    predictors: Sequence[str],
    config: Optional[AnalysisConfig] = None,
) -> TrainingResult:
    """Fit one OLS model, or explain why it cannot be fitted.

    Returns ModelUnavailable (never raises) when there are too few weeks
    (n < predictors + 2), no predictors, or a degenerate design. Raises
    InvalidMetricError only for metric names the core does not know.
    """
    config = config or DEFAULT_CONFIG
    if target not in WELLBEING_METRIC_NAMES:
        raise InvalidMetricError(target, WELLBEING_METRIC_NAMES)
    predictors = list(predictors)
    if not predictors:
        return ModelUnavailable(target, REASON_NO_PREDICTORS, "no candidate predictors")
    if points:
        known = set(discover_financial_metrics(points)) | set(RESERVED_FINANCIAL_METRICS)
        for name in predictors:
            if name not in known:
                raise InvalidMetricError(name, sorted(known))

    x_raw, y = _design(points, target, predictors)
    n, p = len(y), len(predictors)
    if n < p + 2:
        return ModelUnavailable(
            target, REASON_INSUFFICIENT_DATA,
            f"need at least {p + 2} weeks with all predictors, got {n}",
        )
    if np.std(y) < ZERO_VARIANCE_EPS:
        return ModelUnavailable(target, REASON_DEGENERATE, f"{target} is constant over {n} weeks")

    design = np.column_stack([np.ones(n), x_raw])
    rank = np.linalg.matrix_rank(design)
    if rank < p + 1:
        return ModelUnavailable(
            target, REASON_DEGENERATE,
            f"design matrix rank {rank} < {p + 1} (constant or collinear predictors)",
        )
    scaled = design / np.linalg.norm(design, axis=0)
    cond = float(np.linalg.cond(scaled))
    if not np.isfinite(cond) or cond > config.max_condition_number:
        return ModelUnavailable(
            target, REASON_DEGENERATE,
            f"design matrix is near-singular (condition number {cond:.3g})",
        )

    try:
        beta, _, _, _ = np.linalg.lstsq(design, y, rcond=None)
    except np.linalg.LinAlgError as e:
        return ModelUnavailable(target, REASON_DEGENERATE, f"least-squares solve failed: {e}")

    y_hat = design @ beta
    ss_res = float(np.sum((y - y_hat) ** 2))
    ss_tot = float(np.sum((y - y.mean()) ** 2))
    r2 = 1 - ss_res / ss_tot
    r2_adj = 1 - (1 - r2) * (n - 1) / (n - p - 1)

    model = RegressionModel(
        target=target,
        predictors=tuple(predictors),
        coefficients=tuple(float(b) for b in beta[1:]),
        intercept=float(beta[0]),
        r_squared=r2,
        adjusted_r_squared=r2_adj,
        n_samples=n,
    )
    log.info("   Regression %s ~ %s: R²=%.3f (adj %.3f, n=%d)",
             target, " + ".join(predictors), r2, r2_adj, n)
    return model


def require_model(result: TrainingResult) -> RegressionModel:
    """Unwrap a training result, raising the matching error if unavailable."""
    if isinstance(result, ModelUnavailable):
        raise result.error()
    return result


def train_all(
    points: Sequence[WeeklyDataPoint],
    correlations: Sequence[CorrelationResult],
    engine: Optional[CorrelationEngine] = None,
    config: Optional[AnalysisConfig] = None,
    targets: Optional[Sequence[str]] = None,
) -> Dict[str, TrainingResult]:
    """One model per wellbeing metric, degrading one metric at a time.

    Predictors are the top correlated financial metrics for each target.
    When the full set cannot be fitted, the weakest predictor is dropped
    and the fit retried before the metric is reported unavailable.
    """
    config = config or DEFAULT_CONFIG
    engine = engine or CorrelationEngine(config)
    targets = list(WELLBEING_METRIC_NAMES) if targets is None else list(targets)

    models: Dict[str, TrainingResult] = {}
    for target in targets:
        candidates = engine.predictors_for(correlations, target, config.max_predictors)
        if not candidates:
            models[target] = ModelUnavailable(
                target, REASON_NO_PREDICTORS,
                f"no financial metric correlates with {target} above |r| {config.min_abs_r}",
            )
            continue
        result: TrainingResult = ModelUnavailable(target, REASON_NO_PREDICTORS)
        for k in range(len(candidates), 0, -1):
            result = train_model(points, target, candidates[:k], config)
            if isinstance(result, RegressionModel):
                break
            log.info("   Regression %s with %d predictors unavailable (%s)", target, k, result.reason)
        if isinstance(result, ModelUnavailable):
            log.warning("No model for %s: %s", target, result.detail or result.reason)
        models[target] = result
    return models
