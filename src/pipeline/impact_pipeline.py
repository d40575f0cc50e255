"""Financial/wellbeing impact pipeline with explicit health signaling."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from analytics.config import DEFAULT_CONFIG, AnalysisConfig
from analytics.models import (
    CorrelationResult,
    ModelUnavailable,
    PredictionResult,
    ScenarioResult,
    Transaction,
    TrainingResult,
    WeeklyDataPoint,
    WellbeingRecord,
)
from analytics.predictor import predict
from analytics.regression import train_all
from analytics.scenarios import ScenarioInput, run_scenarios
from correlation_engine import CorrelationEngine
from pipeline.aggregator import CategoryRule, IncomeSpec, aggregate_weekly, latest_financial_vector

log = logging.getLogger("impact_pipeline")


@dataclass(frozen=True)
class ImpactAnalysisResult:
    weekly_data: Tuple[WeeklyDataPoint, ...]
    correlations: Tuple[CorrelationResult, ...]
    models: Tuple[Tuple[str, TrainingResult], ...]
    predictions: Tuple[Tuple[str, PredictionResult], ...]
    scenarios: Tuple[ScenarioResult, ...]
    baseline: Tuple[Tuple[str, float], ...]
    analysis_status: str                 # success | degraded
    degraded_reasons: Tuple[str, ...] = ()

    @property
    def n_weeks(self) -> int:
        return len(self.weekly_data)

    @property
    def first_week(self) -> Optional[str]:
        return self.weekly_data[0].week if self.weekly_data else None

    @property
    def last_week(self) -> Optional[str]:
        return self.weekly_data[-1].week if self.weekly_data else None

    @property
    def model_map(self) -> Dict[str, TrainingResult]:
        return dict(self.models)

    @property
    def prediction_map(self) -> Dict[str, PredictionResult]:
        return dict(self.predictions)


class ImpactAnalysisPipeline:
    """Aggregate -> correlate -> train -> predict -> what-if.

    Holds configuration only; each run() is a pure function of its inputs.
    Data shortfalls degrade the result instead of raising.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None,
                 categories: Optional[Mapping[str, CategoryRule]] = None):
        self.config = config or DEFAULT_CONFIG
        self.categories = categories
        self.engine = CorrelationEngine(self.config)

    def run(
        self,
        transactions: Iterable[Transaction],
        wellbeing: Iterable[WellbeingRecord],
        scenarios: Optional[Iterable[ScenarioInput]] = None,
        weekly_income: IncomeSpec = None,
    ) -> ImpactAnalysisResult:
        log.info("Step 1/5: Aggregating weekly data...")
        points = aggregate_weekly(
            transactions, wellbeing,
            categories=self.categories,
            weekly_income=weekly_income,
            config=self.config,
        )

        if len(points) < self.config.min_weeks_for_analysis:
            log.warning(
                "Impact analysis degraded: %d complete weeks (need >= %d)",
                len(points), self.config.min_weeks_for_analysis,
            )
            return ImpactAnalysisResult(
                weekly_data=tuple(points),
                correlations=(),
                models=(),
                predictions=(),
                scenarios=(),
                baseline=tuple(latest_financial_vector(points).items()),
                analysis_status="degraded",
                degraded_reasons=("insufficient_weekly_points",),
            )

        log.info("Step 2/5: Computing correlations...")
        correlations = self.engine.analyze(points)

        log.info("Step 3/5: Training predictive models...")
        models = train_all(points, correlations, self.engine, self.config)

        log.info("Step 4/5: Predicting from the latest week...")
        baseline = latest_financial_vector(points)
        predictions = {m: predict(model, baseline, self.config) for m, model in models.items()}

        log.info("Step 5/5: Running what-if scenarios...")
        scenario_results = run_scenarios(models, baseline, scenarios, self.config)

        reasons: List[str] = [
            f"model_unavailable:{m}" for m, model in models.items()
            if isinstance(model, ModelUnavailable)
        ]
        result = ImpactAnalysisResult(
            weekly_data=tuple(points),
            correlations=tuple(correlations),
            models=tuple(models.items()),
            predictions=tuple(predictions.items()),
            scenarios=tuple(scenario_results),
            baseline=tuple(baseline.items()),
            analysis_status=self._overall_status(reasons),
            degraded_reasons=tuple(reasons),
        )
        self._log_summary(result)
        return result

    @staticmethod
    def _overall_status(reasons: List[str]) -> str:
        return "degraded" if reasons else "success"

    @staticmethod
    def _log_summary(result: ImpactAnalysisResult) -> None:
        n_models = sum(1 for _, m in result.models if not isinstance(m, ModelUnavailable))
        n_strong = sum(1 for c in result.correlations if c.strength == "strong")
        log.info(
            "\n   IMPACT DIGEST (%s -> %s, %d weeks)\n"
            "   Correlations : %d kept (%d strong)\n"
            "   Models       : %d of %d trained\n"
            "   Scenarios    : %d evaluated\n"
            "   Status       : %s",
            result.first_week,
            result.last_week,
            result.n_weeks,
            len(result.correlations),
            n_strong,
            n_models,
            len(result.models),
            len(result.scenarios),
            result.analysis_status,
        )
        if result.degraded_reasons:
            log.warning("Degraded reasons: %s", ", ".join(result.degraded_reasons))
