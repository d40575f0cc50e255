"""
Correlation Engine
==================
Relates weekly spending to weekly wellbeing.

Architecture (3 layers):
  Layer 0: Frame:  Flatten WeeklyDataPoints into one row per week with a
            column per financial metric and per wellbeing metric. Weeks
            without a value for a metric (savings_rate without income)
            are NaN and drop out pairwise.
  Layer 1: Coefficients:  Pearson r (or Spearman on ranks) for every
            (financial, wellbeing) pair, with a two-sided p-value.
  Layer 2: Classification:  strength, direction, sample-size confidence,
            noise floor, deterministic ranking.

Key rules:
  • Zero-variance series are EXCLUDED, never reported as NaN/inf.
  • Strength is fixed: |r| < 0.3 weak, < 0.6 moderate, else strong.
  • n < 5 weeks is always "low" confidence, whatever |r| says.
  • Ranking: |r| descending, ties alphabetical by financial metric.
  • r is computed on raw values. Polarity (stress: lower is better) is
    applied only when interpreting a result, see is_beneficial().
"""

from __future__ import annotations

import math
import logging
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats as sp_stats

from analytics.config import DEFAULT_CONFIG, AnalysisConfig
from analytics.errors import InvalidMetricError
from analytics.models import CorrelationResult, WeeklyDataPoint
from constants import (
    CONFIDENCE_LABELS,
    RESERVED_FINANCIAL_METRICS,
    STRENGTH_LABELS,
    WELLBEING_BY_NAME,
    WELLBEING_METRIC_NAMES,
)

log = logging.getLogger("correlation_engine")


# ═══════════════════════════════════════════════════════════════
#  CONSTANTS
# ═══════════════════════════════════════════════════════════════

# Below this std a series is treated as constant
ZERO_VARIANCE_EPS = 1e-10


# ═══════════════════════════════════════════════════════════════
#  PURE HELPERS
# ═══════════════════════════════════════════════════════════════

def pearson_r(x: Sequence[float], y: Sequence[float]) -> Optional[float]:
    """Pearson correlation r = cov(X, Y) / (σX · σY).

    Returns None when the series are too short, of unequal length, or
    either has zero variance. Symmetric in its arguments.
    """
    xs = np.asarray(x, dtype=np.float64)
    ys = np.asarray(y, dtype=np.float64)
    if xs.shape != ys.shape or xs.size < 2:
        return None
    if np.std(xs) < ZERO_VARIANCE_EPS or np.std(ys) < ZERO_VARIANCE_EPS:
        return None
    dx = xs - xs.mean()
    dy = ys - ys.mean()
    den = math.sqrt(float(np.sum(dx * dx)) * float(np.sum(dy * dy)))
    if den == 0 or not math.isfinite(den):
        return None
    r = float(np.sum(dx * dy)) / den
    # float rounding can push |r| a hair past 1
    return max(-1.0, min(1.0, r))


def spearman_r(x: Sequence[float], y: Sequence[float]) -> Optional[float]:
    """Spearman rank correlation: Pearson r over average ranks."""
    xs = np.asarray(x, dtype=np.float64)
    ys = np.asarray(y, dtype=np.float64)
    if xs.shape != ys.shape or xs.size < 2:
        return None
    return pearson_r(sp_stats.rankdata(xs), sp_stats.rankdata(ys))


def p_value(r: float, n: int) -> float:
    """Two-sided p-value of r under H0: ρ = 0 (t distribution, n-2 df)."""
    if n <= 2:
        return 1.0
    if abs(r) >= 1.0:
        return 0.0
    t_stat = r * math.sqrt(n - 2) / math.sqrt(1 - r * r + 1e-15)
    return float(2 * sp_stats.t.sf(abs(t_stat), n - 2))


def classify_strength(r: float, config: AnalysisConfig = DEFAULT_CONFIG) -> str:
    weak, moderate, strong = STRENGTH_LABELS
    a = abs(r)
    if a < config.moderate_r:
        return weak
    if a < config.strong_r:
        return moderate
    return strong


def classify_direction(r: float) -> str:
    return "positive" if r >= 0 else "negative"


def sample_confidence(n: int, config: AnalysisConfig = DEFAULT_CONFIG) -> str:
    """Confidence from the number of weeks behind a coefficient."""
    low, moderate, high = CONFIDENCE_LABELS
    if n < config.low_confidence_below:
        return low
    if n < config.high_confidence_from:
        return moderate
    return high


def ranking_key(result: CorrelationResult):
    return (-abs(result.r), result.financial_metric, result.wellbeing_metric)


def is_beneficial(result: CorrelationResult) -> bool:
    """Does MORE of this spending go with a BETTER outcome?

    Reads the wellbeing metric's polarity flag: for stress_level a
    negative r is the good direction.
    """
    metric = WELLBEING_BY_NAME.get(result.wellbeing_metric)
    higher_is_better = metric.higher_is_better if metric else True
    return (result.r > 0) == higher_is_better


def discover_financial_metrics(points: Iterable[WeeklyDataPoint]) -> List[str]:
    """Financial metric names present in the series, first-seen order."""
    seen: Dict[str, None] = {}
    for p in points:
        for name in p.financial.as_vector():
            seen.setdefault(name, None)
    return list(seen)


# ═══════════════════════════════════════════════════════════════
#  ENGINE
# ═══════════════════════════════════════════════════════════════

class CorrelationEngine:
    """
    Stateless: holds only its thresholds. Every call is a pure function
    of its arguments, so one engine may be shared across users/threads.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or DEFAULT_CONFIG

    # ─── MAIN ENTRY ──────────────────────────────────────────

    def analyze(
        self,
        points: Sequence[WeeklyDataPoint],
        financial_metrics: Optional[Sequence[str]] = None,
        wellbeing_metrics: Optional[Sequence[str]] = None,
    ) -> List[CorrelationResult]:
        """Correlate every (financial, wellbeing) pair and rank the results.

        Degenerate pairs and pairs under the |r| floor are left out.
        Raises InvalidMetricError for unknown requested metric names.
        """
        wb_metrics = self._resolve_wellbeing(wellbeing_metrics)
        known_financial = discover_financial_metrics(points)
        fin_metrics = self._resolve_financial(financial_metrics, known_financial)

        if len(points) < 2:
            log.info("   Correlation: %d weekly points, nothing to correlate", len(points))
            return []

        data = self._layer0_frame(points, fin_metrics, wb_metrics)
        results, n_degenerate, n_noise = self._layer1_coefficients(data, fin_metrics, wb_metrics)
        results.sort(key=ranking_key)

        log.info(
            "   Correlation (%s, %d weeks): %d pairs kept, %d degenerate, %d below |r|<%.2f",
            self.config.correlation_method,
            len(points),
            len(results),
            n_degenerate,
            n_noise,
            self.config.min_abs_r,
        )
        return results

    def top_correlations(self, results: Iterable[CorrelationResult],
                         limit: Optional[int] = None) -> List[CorrelationResult]:
        """Strongest results first; ties broken alphabetically."""
        ranked = sorted(results, key=ranking_key)
        return ranked if limit is None else ranked[:max(0, limit)]

    def predictors_for(self, results: Iterable[CorrelationResult], target: str,
                       limit: Optional[int] = None) -> List[str]:
        """Top financial metrics for one wellbeing metric, strongest first."""
        if target not in WELLBEING_METRIC_NAMES:
            raise InvalidMetricError(target, WELLBEING_METRIC_NAMES)
        limit = self.config.max_predictors if limit is None else limit
        ranked = self.top_correlations(r for r in results if r.wellbeing_metric == target)
        return [r.financial_metric for r in ranked[:limit]]

    # ─── Validation ──────────────────────────────────────────

    @staticmethod
    def _resolve_wellbeing(requested: Optional[Sequence[str]]) -> List[str]:
        if requested is None:
            return list(WELLBEING_METRIC_NAMES)
        for name in requested:
            if name not in WELLBEING_METRIC_NAMES:
                raise InvalidMetricError(name, WELLBEING_METRIC_NAMES)
        return list(requested)

    @staticmethod
    def _resolve_financial(requested: Optional[Sequence[str]], known: List[str]) -> List[str]:
        if requested is None:
            return known
        allowed = set(known) | set(RESERVED_FINANCIAL_METRICS)
        for name in requested:
            if name not in allowed:
                raise InvalidMetricError(name, known)
        return list(requested)

    # ─── LAYER 0: Frame ──────────────────────────────────────

    def _layer0_frame(self, points: Sequence[WeeklyDataPoint],
                      fin_metrics: List[str], wb_metrics: List[str]) -> pd.DataFrame:
        rows = []
        for p in points:
            vector = p.financial.as_vector()
            row = {"week": p.week}
            for f in fin_metrics:
                row[f] = vector.get(f, np.nan)
            for w in wb_metrics:
                row[w] = p.wellbeing.value(w)
            rows.append(row)
        return pd.DataFrame(rows, columns=["week", *dict.fromkeys([*fin_metrics, *wb_metrics])])

    # ─── LAYER 1 + 2: Coefficients and classification ────────

    def _coefficient(self, x: np.ndarray, y: np.ndarray) -> Optional[float]:
        if self.config.correlation_method == "spearman":
            return spearman_r(x, y)
        return pearson_r(x, y)

    def _layer1_coefficients(self, data: pd.DataFrame, fin_metrics: List[str],
                             wb_metrics: List[str]):
        results: List[CorrelationResult] = []
        n_degenerate = 0
        n_noise = 0
        for f in fin_metrics:
            for w in wb_metrics:
                sub = data[[f, w]].dropna()
                n = len(sub)
                r = self._coefficient(sub[f].to_numpy(dtype=float), sub[w].to_numpy(dtype=float))
                if r is None:
                    n_degenerate += 1
                    continue
                if abs(r) < self.config.min_abs_r:
                    n_noise += 1
                    continue
                results.append(CorrelationResult(
                    financial_metric=f,
                    wellbeing_metric=w,
                    r=r,
                    strength=classify_strength(r, self.config),
                    direction=classify_direction(r),
                    confidence=sample_confidence(n, self.config),
                    n=n,
                    p_value=p_value(r, n),
                ))
        return results, n_degenerate, n_noise
