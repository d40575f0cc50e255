"""Error taxonomy for the impact analysis core."""


class ImpactAnalysisError(Exception):
    """Base exception for the analysis core"""

    pass


class InsufficientDataError(ImpactAnalysisError):
    """Too few weekly points for the requested operation"""

    pass


class DegenerateInputError(ImpactAnalysisError):
    """Zero-variance series or singular regression matrix"""

    pass


class InvalidMetricError(ImpactAnalysisError, ValueError):
    """Caller asked for a metric name the core does not know"""

    def __init__(self, name: str, known=()):
        self.name = name
        self.known = tuple(known)
        msg = f"Unknown metric: {name!r}"
        if self.known:
            msg += f" (known: {', '.join(self.known)})"
        super().__init__(msg)
