"""Tick-snap search for stock + diluent volumes.

Syringes can only measure whole multiples of their increment, so the ideal
continuous volumes have to be snapped. Snapping each liquid independently
distorts the concentration, so instead this module searches a bounded grid:

- Stock ticks m in [max(1, m0 - W), m0 + W], where m0 is the tick count
  nearest the ideal stock volume and W is the configured span.
- For each m, the diluent tick count implied by the target ratio, and its
  neighbours at offsets -2..+2 (floored at zero).

Each (stock, diluent) pair is scored as

    score = w_conc × conc_error + w_vol × volume_error

and pairs needing more fills than allowed are rejected. The lowest score
wins; on exact ties the pair evaluated first wins (ascending m, then
ascending offset), so the result is deterministic. Cost is bounded by
(2W + 1) × 5 evaluations.

If every pair is rejected, fallback_round() snaps each liquid directly.
"""

import logging
from dataclasses import dataclass

from infusion_mixer.compute.syringes import count_fills, nearest_tick_count, snap_to_increment
from infusion_mixer.models import SearchConfig, Syringe

logger = logging.getLogger(__name__)

# Diluent tick offsets tried around the ratio-implied tick count
DILUENT_TICK_OFFSETS = (-2, -1, 0, 1, 2)

FALLBACK_ROUNDING_MESSAGE = (
    "Used simple rounding because a snapped combo within search bounds "
    "was not found."
)


@dataclass(frozen=True)
class VolumeCandidate:
    """One evaluated (stock, diluent) combination.

    Attributes:
        stock_volume_ml: Snapped stock volume.
        diluent_volume_ml: Snapped diluent volume.
        total_volume_ml: Sum of both volumes.
        concentration_mg_per_ml: Resulting concentration.
        conc_error: Relative concentration error against the target.
        volume_error: Relative total-volume error against the target.
        score: Weighted objective (lower is better).
    """

    stock_volume_ml: float
    diluent_volume_ml: float
    total_volume_ml: float
    concentration_mg_per_ml: float
    conc_error: float
    volume_error: float
    score: float


def relative_error(actual: float, target: float) -> float:
    """Relative error of actual against target.

    A zero target has no relative scale, so the absolute error is used.
    """
    if target == 0:
        return abs(actual)
    return abs(actual - target) / abs(target)


def mixed_concentration(
    stock_mg_per_ml: float,
    stock_volume_ml: float,
    total_volume_ml: float,
) -> float:
    """Concentration after diluting stock_volume_ml up to total_volume_ml."""
    if total_volume_ml <= 0:
        return 0.0
    return stock_mg_per_ml * (stock_volume_ml / total_volume_ml)


def evaluate_candidate(
    stock_volume_ml: float,
    diluent_volume_ml: float,
    stock_mg_per_ml: float,
    target_concentration: float,
    target_volume_ml: float,
    config: SearchConfig,
) -> VolumeCandidate | None:
    """Score a (stock, diluent) pair, or None if it holds no liquid."""
    total = stock_volume_ml + diluent_volume_ml
    if total <= 0:
        return None

    concentration = mixed_concentration(stock_mg_per_ml, stock_volume_ml, total)
    conc_error = relative_error(concentration, target_concentration)
    volume_error = relative_error(total, target_volume_ml)
    score = config.conc_weight * conc_error + config.volume_weight * volume_error

    return VolumeCandidate(
        stock_volume_ml=stock_volume_ml,
        diluent_volume_ml=diluent_volume_ml,
        total_volume_ml=total,
        concentration_mg_per_ml=concentration,
        conc_error=conc_error,
        volume_error=volume_error,
        score=score,
    )


def _ideal_diluent_volume(
    stock_volume_ml: float,
    ratio: float,
    target_volume_ml: float,
) -> float:
    """Diluent volume that makes stock_volume_ml the ratio fraction of the mix."""
    ideal_total = stock_volume_ml / ratio if ratio > 0 else target_volume_ml
    return max(0.0, ideal_total - stock_volume_ml)


def search_snapped_volumes(
    stock_mg_per_ml: float,
    target_concentration: float,
    target_volume_ml: float,
    stock_syringe: Syringe,
    diluent_syringe: Syringe,
    config: SearchConfig,
) -> VolumeCandidate | None:
    """Find the best tick-aligned stock/diluent pair.

    Args:
        stock_mg_per_ml: Normalized stock concentration (> 0).
        target_concentration: Concentration to reproduce (mg/mL).
        target_volume_ml: Total volume to reproduce.
        stock_syringe: Syringe measuring the stock.
        diluent_syringe: Syringe measuring the diluent.
        config: Window half-width, fill cap and objective weights.

    Returns:
        Lowest-scoring admissible candidate, or None if every pair in the
        window needs more fills than allowed.
    """
    ratio = target_concentration / stock_mg_per_ml
    stock_inc = stock_syringe.increment_ml
    diluent_inc = diluent_syringe.increment_ml

    m0 = max(1, nearest_tick_count(ratio * target_volume_ml, stock_inc))
    m_min = max(1, m0 - config.span_steps)
    m_max = m0 + config.span_steps

    logger.debug(
        f"Searching stock ticks {m_min}..{m_max} (center {m0}), "
        f"ratio={ratio:.6g}, target volume={target_volume_ml:.4g} mL"
    )

    best: VolumeCandidate | None = None
    evaluated = 0
    rejected = 0

    for m in range(m_min, m_max + 1):
        stock_volume = m * stock_inc
        if count_fills(stock_volume, stock_syringe) > config.max_fills_per_liquid:
            rejected += len(DILUENT_TICK_OFFSETS)
            continue

        ideal_diluent = _ideal_diluent_volume(stock_volume, ratio, target_volume_ml)
        n_ideal = nearest_tick_count(ideal_diluent, diluent_inc)

        for offset in DILUENT_TICK_OFFSETS:
            n = max(0, n_ideal + offset)
            diluent_volume = n * diluent_inc
            if count_fills(diluent_volume, diluent_syringe) > config.max_fills_per_liquid:
                rejected += 1
                continue

            candidate = evaluate_candidate(
                stock_volume,
                diluent_volume,
                stock_mg_per_ml,
                target_concentration,
                target_volume_ml,
                config,
            )
            if candidate is None:
                continue
            evaluated += 1

            if best is None or candidate.score < best.score:
                best = candidate

    if best is None:
        logger.debug(f"No admissible candidate ({rejected} rejected by fill cap)")
    else:
        logger.debug(
            f"Best of {evaluated} candidates: stock={best.stock_volume_ml:.4g} mL, "
            f"diluent={best.diluent_volume_ml:.4g} mL, score={best.score:.6g}"
        )

    return best


def fallback_round(
    raw_stock_volume_ml: float,
    stock_mg_per_ml: float,
    target_concentration: float,
    target_volume_ml: float,
    stock_syringe: Syringe,
    diluent_syringe: Syringe,
    config: SearchConfig,
) -> VolumeCandidate:
    """Snap each liquid directly, ignoring the fill cap.

    The stock volume is rounded to its increment first, never below one
    tick; the diluent is then derived from the target ratio and rounded to
    its own increment.

    Returns:
        The snapped candidate (always produced).
    """
    ratio = target_concentration / stock_mg_per_ml
    stock_inc = stock_syringe.increment_ml
    stock_volume = max(1, nearest_tick_count(raw_stock_volume_ml, stock_inc)) * stock_inc
    ideal_diluent = _ideal_diluent_volume(stock_volume, ratio, target_volume_ml)
    diluent_volume = snap_to_increment(ideal_diluent, diluent_syringe.increment_ml)

    total = stock_volume + diluent_volume
    concentration = mixed_concentration(stock_mg_per_ml, stock_volume, total)
    conc_error = relative_error(concentration, target_concentration)
    volume_error = relative_error(total, target_volume_ml)

    logger.warning(
        f"Fallback rounding: stock={stock_volume:.4g} mL, "
        f"diluent={diluent_volume:.4g} mL"
    )

    return VolumeCandidate(
        stock_volume_ml=stock_volume,
        diluent_volume_ml=diluent_volume,
        total_volume_ml=total,
        concentration_mg_per_ml=concentration,
        conc_error=conc_error,
        volume_error=volume_error,
        score=config.conc_weight * conc_error + config.volume_weight * volume_error,
    )
