"""Precondition checks shared by the planners.

A request failing any of these cannot produce a meaningful plan (it would
divide by zero or by a negative quantity), so it is rejected up front with
InvalidRequestError naming the offending field.
"""

import math
from collections.abc import Sequence

from infusion_mixer.models import InvalidRequestError, Syringe, ToleranceConfig

# Allowed drift of objective weights from summing to one
WEIGHT_SUM_TOLERANCE = 1e-9


def require_positive(name: str, value: float) -> None:
    """Raise unless value is a finite number > 0."""
    if not (value > 0) or not math.isfinite(value):
        raise InvalidRequestError(f"{name} must be > 0, got {value}")


def require_non_negative(name: str, value: float) -> None:
    """Raise unless value is a finite number >= 0."""
    if not (value >= 0) or not math.isfinite(value):
        raise InvalidRequestError(f"{name} must be >= 0, got {value}")


def require_syringes(syringes: Sequence[Syringe]) -> None:
    """Raise if the syringe catalog is empty."""
    if len(syringes) == 0:
        raise InvalidRequestError("syringes must contain at least one syringe")


def require_tolerance(tolerance: ToleranceConfig) -> None:
    """Raise if a tolerance percentage is negative."""
    require_non_negative("tolerance.concentration_pct", tolerance.concentration_pct)
    require_non_negative("tolerance.total_volume_pct", tolerance.total_volume_pct)


def require_weights(name: str, weights: Sequence[float]) -> None:
    """Raise unless weights are non-negative and sum to one."""
    for weight in weights:
        require_non_negative(name, weight)
    if abs(sum(weights) - 1.0) > WEIGHT_SUM_TOLERANCE:
        raise InvalidRequestError(f"{name} must sum to 1, got {sum(weights)}")


def require_count(name: str, value: int, minimum: int) -> None:
    """Raise unless value is an integer >= minimum."""
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise InvalidRequestError(f"{name} must be an integer >= {minimum}, got {value}")
