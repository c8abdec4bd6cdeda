"""Syringe selection and tick snapping."""

import logging
import math
from collections.abc import Sequence

from infusion_mixer.models import InvalidRequestError, Syringe

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity."""
    return math.floor(value + 0.5)


def nearest_tick_count(volume_ml: float, increment_ml: float) -> int:
    """Number of increments closest to volume_ml."""
    return round_half_up(volume_ml / increment_ml)


def snap_to_increment(volume_ml: float, increment_ml: float) -> float:
    """Round a continuous volume to the nearest multiple of increment_ml."""
    return nearest_tick_count(volume_ml, increment_ml) * increment_ml


def count_fills(volume_ml: float, syringe: Syringe) -> int:
    """Number of draws needed to measure volume_ml with syringe."""
    return syringe.fills_for(volume_ml)


def choose_syringe_for_volume(
    volume_ml: float,
    syringes: Sequence[Syringe],
) -> Syringe:
    """Pick the syringe to measure a volume with.

    Policy:
    - Among syringes holding the volume in one fill, take the finest
      increment, then the smallest size.
    - If none can, take the largest syringe (fewest repeated fills), then
      the finest increment.

    Args:
        volume_ml: Unsnapped volume to measure.
        syringes: Available syringes (non-empty).

    Returns:
        The selected Syringe.

    Raises:
        InvalidRequestError: If syringes is empty.
    """
    if not syringes:
        raise InvalidRequestError("Syringe catalog is empty")

    one_fill = [s for s in syringes if s.size_ml >= volume_ml]
    if one_fill:
        chosen = min(one_fill, key=lambda s: (s.increment_ml, s.size_ml))
        logger.debug(
            f"Volume {volume_ml:.4g} mL fits one fill: {chosen.id} "
            f"({chosen.increment_ml:g} mL ticks)"
        )
        return chosen

    chosen = min(syringes, key=lambda s: (-s.size_ml, s.increment_ml))
    logger.debug(
        f"Volume {volume_ml:.4g} mL exceeds every syringe; using largest "
        f"{chosen.id} ({count_fills(volume_ml, chosen)} fills)"
    )
    return chosen
