"""What-if scenarios: perturb a baseline financial vector and forecast the
resulting change in each modelled wellbeing metric.

    new_vector  = baseline + deltas            (missing metrics: delta 0)
    Δ metric    = predict(model, new) − predict(model, baseline)

Deterministic: no randomness, metrics visited in a fixed order.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from analytics.config import DEFAULT_CONFIG, AnalysisConfig
from analytics.models import (
    Prediction,
    RegressionModel,
    ScenarioResult,
    ScenarioSpec,
    TrainingResult,
)
from analytics.predictor import predict
from constants import DEFAULT_SCENARIOS, WELLBEING_BY_NAME, WELLBEING_METRIC_NAMES, wellbeing_label

log = logging.getLogger("scenarios")

ScenarioInput = Union[ScenarioSpec, Tuple[str, Mapping[str, float]]]


def default_scenarios() -> List[ScenarioSpec]:
    return [ScenarioSpec.from_mapping(name, deltas) for name, deltas in DEFAULT_SCENARIOS]


def _as_spec(scenario: ScenarioInput) -> ScenarioSpec:
    if isinstance(scenario, ScenarioSpec):
        return scenario
    name, deltas = scenario
    return ScenarioSpec.from_mapping(name, dict(deltas))


def apply_deltas(baseline: Mapping[str, Optional[float]],
                 deltas: Mapping[str, float]) -> Dict[str, float]:
    vector = {k: (0.0 if v is None else float(v)) for k, v in baseline.items()}
    for name, delta in deltas.items():
        vector[name] = vector.get(name, 0.0) + float(delta)
    return vector


def _metric_order(name: str):
    if name in WELLBEING_METRIC_NAMES:
        return (WELLBEING_METRIC_NAMES.index(name), name)
    return (len(WELLBEING_METRIC_NAMES), name)


def recommend(scenario_name: str, predicted_deltas: Mapping[str, float],
              config: AnalysisConfig = DEFAULT_CONFIG) -> Tuple[Optional[str], str]:
    """Pick the metric with the largest |Δ| and phrase it by polarity.

    Returns (dominant_metric, recommendation).
    """
    if not predicted_deltas:
        return None, (f"{scenario_name}: not enough data yet to forecast "
                      f"how this would affect your wellbeing.")

    dominant = min(predicted_deltas, key=lambda m: (-abs(predicted_deltas[m]), m))
    delta = predicted_deltas[dominant]
    label = wellbeing_label(dominant)
    if abs(delta) < config.negligible_delta:
        return dominant, (f"{scenario_name}: no meaningful change expected "
                          f"(largest shift: {label} {delta:+.2f}).")

    metric = WELLBEING_BY_NAME.get(dominant)
    higher_is_better = metric.higher_is_better if metric else True
    if (delta > 0) == higher_is_better:
        return dominant, (f"{scenario_name}: likely to improve your {label} "
                          f"({delta:+.2f}). Worth trying.")
    return dominant, (f"{scenario_name}: likely to worsen your {label} "
                      f"({delta:+.2f}). Consider alternatives.")


def run_scenarios(
    models: Mapping[str, TrainingResult],
    baseline: Mapping[str, Optional[float]],
    scenarios: Optional[Iterable[ScenarioInput]] = None,
    config: Optional[AnalysisConfig] = None,
) -> List[ScenarioResult]:
    """Forecast every scenario against every available model.

    Metrics whose model is unavailable are listed per scenario in
    ``unavailable_metrics`` rather than aborting the batch.
    """
    config = config or DEFAULT_CONFIG
    specs = default_scenarios() if scenarios is None else [_as_spec(s) for s in scenarios]

    metrics = sorted(models, key=_metric_order)
    available = [m for m in metrics if isinstance(models[m], RegressionModel)]
    missing = [m for m in metrics if m not in available]
    baseline_predictions = {m: predict(models[m], baseline, config) for m in available}

    results: List[ScenarioResult] = []
    for spec in specs:
        vector = apply_deltas(baseline, spec.delta_map)
        predicted: Dict[str, float] = {}
        unavailable = list(missing)
        for m in available:
            before = baseline_predictions[m]
            after = predict(models[m], vector, config)
            if isinstance(before, Prediction) and isinstance(after, Prediction):
                predicted[m] = after.predicted_value - before.predicted_value
            else:
                unavailable.append(m)

        dominant, text = recommend(spec.name, predicted, config)
        results.append(ScenarioResult(
            name=spec.name,
            deltas=spec.deltas,
            predicted_deltas=tuple((m, predicted[m]) for m in sorted(predicted, key=_metric_order)),
            dominant_metric=dominant,
            recommendation=text,
            unavailable_metrics=tuple(sorted(unavailable, key=_metric_order)),
        ))

    log.info("   Scenarios: %d evaluated against %d models (%d unavailable)",
             len(results), len(available), len(missing))
    return results
