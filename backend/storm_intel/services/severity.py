"""Severity scales for historical storm events and forward-looking predictions.

Events:      minor < moderate < severe < catastrophic
Predictions: marginal < slight < enhanced < moderate < high  (SPC categorical)
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"
    CATASTROPHIC = "catastrophic"


class PredictionSeverity(str, Enum):
    MARGINAL = "marginal"
    SLIGHT = "slight"
    ENHANCED = "enhanced"
    MODERATE = "moderate"
    HIGH = "high"


SEVERITY_ORDER: list[Severity] = list(Severity)
PREDICTION_ORDER: list[PredictionSeverity] = list(PredictionSeverity)

SEVERITY_WEIGHTS: dict[Severity, float] = {
    Severity.MINOR: 0.25,
    Severity.MODERATE: 0.50,
    Severity.SEVERE: 0.75,
    Severity.CATASTROPHIC: 1.0,
}


def parse_severity(value: str | Severity | None) -> Severity | None:
    if isinstance(value, Severity):
        return value
    try:
        return Severity((value or "").strip().lower())
    except ValueError:
        return None


def weight(severity: str | Severity | None) -> float:
    """Severity weight in [0, 1].

    Unknown labels score as minor so aggregation stays total over dirty data.
    """
    parsed = parse_severity(severity)
    if parsed is Severity.MINOR:
        return SEVERITY_WEIGHTS[Severity.MINOR]
    if parsed is Severity.MODERATE:
        return SEVERITY_WEIGHTS[Severity.MODERATE]
    if parsed is Severity.SEVERE:
        return SEVERITY_WEIGHTS[Severity.SEVERE]
    if parsed is Severity.CATASTROPHIC:
        return SEVERITY_WEIGHTS[Severity.CATASTROPHIC]

    logger.warning("Unrecognized severity %r, using minor weight", severity)
    return SEVERITY_WEIGHTS[Severity.MINOR]


def at_least(min_severity: str | Severity) -> list[Severity]:
    """Severities at or above ``min_severity``, lowest first."""
    parsed = parse_severity(min_severity)
    if parsed is None:
        raise ValueError(f"Unknown severity: {min_severity!r}")
    return SEVERITY_ORDER[SEVERITY_ORDER.index(parsed):]


def prediction_rank(severity: str | PredictionSeverity) -> int:
    """1-based rank on the SPC scale, 0 for unknown tiers."""
    try:
        return PREDICTION_ORDER.index(PredictionSeverity(severity)) + 1
    except ValueError:
        return 0


def prediction_at_least(min_severity: str | PredictionSeverity) -> list[PredictionSeverity]:
    rank = prediction_rank(min_severity)
    if rank == 0:
        raise ValueError(f"Unknown prediction severity: {min_severity!r}")
    return PREDICTION_ORDER[rank - 1:]
