"""Tunable thresholds for the analysis core, loadable from .env"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "IMPACT_"
CORRELATION_METHODS = ("pearson", "spearman")


@dataclass(frozen=True)
class AnalysisConfig:
    # Correlation
    min_abs_r: float = 0.2              # below this |r| a pair is noise
    moderate_r: float = 0.3
    strong_r: float = 0.6
    low_confidence_below: int = 5       # n < this -> "low" regardless of |r|
    high_confidence_from: int = 12
    correlation_method: str = "pearson"

    # Aggregation
    anomaly_k: float = 2.0              # mean + k * std per category

    # Regression
    max_predictors: int = 3
    min_weeks_for_analysis: int = 3
    max_condition_number: float = 1e8
    high_r2: float = 0.7
    moderate_r2: float = 0.4

    # Scenarios
    negligible_delta: float = 0.05

    def __post_init__(self):
        if not 0 <= self.min_abs_r <= 1:
            raise ValueError(f"min_abs_r must be within [0, 1], got {self.min_abs_r}")
        if not 0 < self.moderate_r < self.strong_r <= 1:
            raise ValueError(
                f"need 0 < moderate_r < strong_r <= 1, got {self.moderate_r}, {self.strong_r}"
            )
        if not 0 < self.low_confidence_below <= self.high_confidence_from:
            raise ValueError("need 0 < low_confidence_below <= high_confidence_from")
        if self.correlation_method not in CORRELATION_METHODS:
            raise ValueError(
                f"correlation_method must be one of {CORRELATION_METHODS}, "
                f"got {self.correlation_method!r}"
            )
        if self.anomaly_k < 0:
            raise ValueError("anomaly_k must be non-negative")
        if self.max_predictors < 1:
            raise ValueError("max_predictors must be at least 1")
        if self.min_weeks_for_analysis < 2:
            raise ValueError("min_weeks_for_analysis must be at least 2")
        if self.max_condition_number <= 1:
            raise ValueError("max_condition_number must be greater than 1")
        if not 0 <= self.moderate_r2 < self.high_r2 <= 1:
            raise ValueError("need 0 <= moderate_r2 < high_r2 <= 1")
        if self.negligible_delta < 0:
            raise ValueError("negligible_delta must be non-negative")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "AnalysisConfig":
        """Build a config from IMPACT_* variables (e.g. IMPACT_MIN_ABS_R).

        Unset variables keep their defaults.
        """
        load_dotenv(env_file)
        overrides = {}
        for f in fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            raw = raw.strip()
            default = f.default
            try:
                if isinstance(default, int):
                    overrides[f.name] = int(raw)
                elif isinstance(default, float):
                    overrides[f.name] = float(raw)
                else:
                    overrides[f.name] = raw.lower()
            except ValueError:
                raise ValueError(
                    f"{ENV_PREFIX}{f.name.upper()}={raw!r} is not a valid {type(default).__name__}"
                ) from None
        return cls(**overrides)


DEFAULT_CONFIG = AnalysisConfig()
