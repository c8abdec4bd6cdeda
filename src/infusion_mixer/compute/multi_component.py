"""Three-component mixtures: active drug + secondary agent + filler.

Example: norepinephrine diluted in 5% dextrose made up from 50% dextrose
and sterile water. The active drug's concentration is optimized as in the
two-liquid planner, but the secondary agent's final concentration is a hard
band (target ± tolerance), not merely an error term.

Search:
- Active ticks a in a window around the ideal active volume (floor 0)
- Secondary ticks s in a window around the ideal secondary volume (floor 1)
- Window half-width: min(cap, max(3, ceil(5% of the center tick count)))
- For each (a, s), the band fixes the admissible total volume range and
  so the admissible filler range; filler ticks are tried at the value
  nearest the target volume, its two neighbours, and both range ends.

Any combination whose secondary concentration leaves the band is rejected.
Survivors are scored

    score = w_active × active_error + w_secondary × secondary_error
            + w_volume × volume_error

and the first lowest score wins. If nothing survives, the plan is
explicitly infeasible: no draws are returned, because no rounding of a
rejected combination is safe to prepare.
"""

import logging
import math
from dataclasses import dataclass

from infusion_mixer.compute.feasibility import (
    compute_delivered_dose,
    compute_mapped_rate,
    solve_feasibility,
)
from infusion_mixer.compute.planner import dose_range_alert
from infusion_mixer.compute.preconditions import (
    require_count,
    require_non_negative,
    require_positive,
    require_syringes,
    require_tolerance,
    require_weights,
)
from infusion_mixer.compute.search import mixed_concentration, relative_error
from infusion_mixer.compute.syringes import choose_syringe_for_volume, round_half_up
from infusion_mixer.compute.tolerance import evaluate_fill_counts, evaluate_tolerances
from infusion_mixer.compute.units import stock_concentration_mg_per_ml
from infusion_mixer.models import (
    AlertKind,
    AlertSeverity,
    DrawInstruction,
    InvalidRequestError,
    MultiComponentPlan,
    MultiComponentRequest,
    MultiComponentWeights,
    PlanAlert,
    Syringe,
)

logger = logging.getLogger(__name__)

# Window half-width as a fraction of the center tick count
SPAN_FRACTION = 0.05
MIN_SPAN_STEPS = 3

# Slack on the secondary-agent band, in mg/mL
BAND_EPSILON = 1e-6

# Slack when converting band-derived filler volumes to tick bounds
TICK_EPSILON = 1e-9


@dataclass(frozen=True)
class _MixCandidate:
    active_volume_ml: float
    secondary_volume_ml: float
    filler_volume_ml: float
    total_volume_ml: float
    active_concentration: float
    secondary_concentration: float
    active_error: float
    secondary_error: float
    volume_error: float
    score: float


def validate_multi_component_request(request: MultiComponentRequest) -> None:
    """Check the hard preconditions of a three-component request.

    Raises:
        InvalidRequestError: If any input would make the plan meaningless.
    """
    require_positive("weight_kg", request.weight_kg)
    require_non_negative("desired_dose", request.desired_dose)
    require_positive("desired_rate_ml_per_hr", request.desired_rate_ml_per_hr)
    require_positive("desired_duration_hr", request.desired_duration_hr)
    if request.planning_rate_ml_per_hr is not None:
        require_positive("planning_rate_ml_per_hr", request.planning_rate_ml_per_hr)
    require_positive(
        "active concentration", stock_concentration_mg_per_ml(request.active)
    )
    secondary_stock = stock_concentration_mg_per_ml(request.secondary.agent)
    require_positive("secondary concentration", secondary_stock)

    secondary = request.secondary
    require_positive(
        "secondary.target_concentration_mg_per_ml",
        secondary.target_concentration_mg_per_ml,
    )
    require_non_negative("secondary.tolerance_mg_per_ml", secondary.tolerance_mg_per_ml)
    if secondary.min_concentration_mg_per_ml <= 0:
        raise InvalidRequestError(
            "secondary.tolerance_mg_per_ml must be smaller than the target "
            f"concentration, got {secondary.tolerance_mg_per_ml}"
        )
    if secondary.target_concentration_mg_per_ml > secondary_stock:
        raise InvalidRequestError(
            f"secondary target {secondary.target_concentration_mg_per_ml} mg/mL "
            f"exceeds {secondary.agent.name} stock {secondary_stock} mg/mL"
        )

    require_syringes(request.syringes)
    require_tolerance(request.tolerance)
    require_weights(
        "weights",
        (request.weights.active, request.weights.secondary, request.weights.volume),
    )
    require_count("max_fills_per_component", request.max_fills_per_component, 1)
    require_count("max_span_steps", request.max_span_steps, 0)


def window_span(center_ticks: float, max_span_steps: int) -> int:
    """Half-width of a tick window around center_ticks."""
    return min(
        max_span_steps,
        max(MIN_SPAN_STEPS, math.ceil(center_ticks * SPAN_FRACTION)),
    )


def _filler_tick_candidates(target: int, low: int, high: int) -> list[int]:
    """Filler tick counts to try, in evaluation order, without repeats."""
    ordered = [
        target,
        min(max(target - 1, low), high),
        min(max(target + 1, low), high),
        low,
        high,
    ]
    return list(dict.fromkeys(ordered))


def search_three_component(
    active_mg_per_ml: float,
    secondary_mg_per_ml: float,
    target_active_concentration: float,
    secondary_min: float,
    secondary_max: float,
    secondary_target: float,
    target_volume_ml: float,
    raw_active_ml: float,
    raw_secondary_ml: float,
    active_syringe: Syringe,
    secondary_syringe: Syringe,
    filler_syringe: Syringe,
    weights: MultiComponentWeights,
    max_span_steps: int,
) -> _MixCandidate | None:
    """Find the best tick-aligned (active, secondary, filler) combination.

    Returns:
        Lowest-scoring combination inside the secondary band, or None.
    """
    inc_active = active_syringe.increment_ml
    inc_secondary = secondary_syringe.increment_ml
    inc_filler = filler_syringe.increment_ml

    center_active = raw_active_ml / inc_active
    center_secondary = raw_secondary_ml / inc_secondary
    span_active = window_span(center_active, max_span_steps)
    span_secondary = window_span(center_secondary, max_span_steps)

    active_start = max(0, round_half_up(center_active) - span_active)
    active_end = max(active_start, round_half_up(center_active) + span_active)
    secondary_start = max(1, round_half_up(center_secondary) - span_secondary)
    secondary_end = max(secondary_start, round_half_up(center_secondary) + span_secondary)

    ratio_lower = secondary_min / secondary_mg_per_ml
    ratio_upper = secondary_max / secondary_mg_per_ml

    logger.debug(
        f"Three-component search: active ticks {active_start}..{active_end}, "
        f"secondary ticks {secondary_start}..{secondary_end}"
    )

    best: _MixCandidate | None = None
    rejected = 0

    for active_ticks in range(active_start, active_end + 1):
        active_volume = active_ticks * inc_active

        for secondary_ticks in range(secondary_start, secondary_end + 1):
            secondary_volume = secondary_ticks * inc_secondary
            fixed_volume = active_volume + secondary_volume

            # Band on the secondary concentration -> band on the total volume
            min_filler = max(0.0, secondary_volume / ratio_upper - fixed_volume)
            max_filler = max(0.0, secondary_volume / ratio_lower - fixed_volume)

            low_ticks = math.ceil(min_filler / inc_filler - TICK_EPSILON)
            high_ticks = math.floor(max_filler / inc_filler + TICK_EPSILON)
            if high_ticks < low_ticks:
                continue

            filler_target = target_volume_ml - fixed_volume
            target_ticks = min(
                max(round_half_up(filler_target / inc_filler), low_ticks), high_ticks
            )

            for filler_ticks in _filler_tick_candidates(
                target_ticks, low_ticks, high_ticks
            ):
                filler_volume = filler_ticks * inc_filler
                total = fixed_volume + filler_volume
                if total <= 0:
                    continue

                secondary_conc = mixed_concentration(
                    secondary_mg_per_ml, secondary_volume, total
                )
                if (
                    secondary_conc < secondary_min - BAND_EPSILON
                    or secondary_conc > secondary_max + BAND_EPSILON
                ):
                    rejected += 1
                    continue

                active_conc = mixed_concentration(active_mg_per_ml, active_volume, total)
                active_error = relative_error(active_conc, target_active_concentration)
                secondary_error = relative_error(secondary_conc, secondary_target)
                volume_error = relative_error(total, target_volume_ml)
                score = (
                    weights.active * active_error
                    + weights.secondary * secondary_error
                    + weights.volume * volume_error
                )

                if best is None or score < best.score:
                    best = _MixCandidate(
                        active_volume_ml=active_volume,
                        secondary_volume_ml=secondary_volume,
                        filler_volume_ml=filler_volume,
                        total_volume_ml=total,
                        active_concentration=active_conc,
                        secondary_concentration=secondary_conc,
                        active_error=active_error,
                        secondary_error=secondary_error,
                        volume_error=volume_error,
                        score=score,
                    )

    if best is not None:
        logger.debug(
            f"Best combination: active={best.active_volume_ml:.4g} mL, "
            f"secondary={best.secondary_volume_ml:.4g} mL, "
            f"filler={best.filler_volume_ml:.4g} mL, score={best.score:.6g} "
            f"({rejected} rejected by band)"
        )

    return best


def compute_multi_component_plan(request: MultiComponentRequest) -> MultiComponentPlan:
    """Plan an active drug + secondary agent + filler mixture.

    Args:
        request: Patient, both stocks, secondary concentration band, dose,
            pump rate, duration and syringe catalog.

    Returns:
        MultiComponentPlan. When no combination satisfies the secondary
        band, feasible is False and draws is empty.

    Raises:
        InvalidRequestError: If a hard precondition fails.
    """
    validate_multi_component_request(request)
    alerts: list[PlanAlert] = []
    secondary = request.secondary

    active_mg = stock_concentration_mg_per_ml(request.active)
    secondary_mg = stock_concentration_mg_per_ml(secondary.agent)

    feasibility = solve_feasibility(
        request.desired_dose,
        request.dose_unit,
        request.weight_kg,
        request.desired_rate_ml_per_hr,
        active_mg,
    )
    if feasibility.alert is not None:
        alerts.append(feasibility.alert)
    target_conc = feasibility.target_concentration_mg_per_ml

    planning_rate = request.planning_rate_ml_per_hr or request.desired_rate_ml_per_hr
    target_volume = request.desired_duration_hr * planning_rate

    raw_active = (target_conc / active_mg) * target_volume
    raw_secondary = (secondary.target_concentration_mg_per_ml / secondary_mg) * target_volume
    raw_filler = max(0.0, target_volume - raw_active - raw_secondary)

    active_syringe = choose_syringe_for_volume(raw_active, request.syringes)
    secondary_syringe = choose_syringe_for_volume(raw_secondary, request.syringes)
    filler_syringe = choose_syringe_for_volume(raw_filler, request.syringes)

    best = search_three_component(
        active_mg,
        secondary_mg,
        target_conc,
        secondary.min_concentration_mg_per_ml,
        secondary.max_concentration_mg_per_ml,
        secondary.target_concentration_mg_per_ml,
        target_volume,
        raw_active,
        raw_secondary,
        active_syringe,
        secondary_syringe,
        filler_syringe,
        request.weights,
        request.max_span_steps,
    )

    plan_fields = dict(
        feasible_at_desired_rate=feasibility.feasible_at_desired_rate,
        needed_concentration_mg_per_ml=feasibility.needed_concentration_mg_per_ml,
        target_concentration_mg_per_ml=target_conc,
        active_stock_concentration_mg_per_ml=active_mg,
        secondary_stock_concentration_mg_per_ml=secondary_mg,
        secondary_target_concentration_mg_per_ml=secondary.target_concentration_mg_per_ml,
        secondary_min_concentration_mg_per_ml=secondary.min_concentration_mg_per_ml,
        secondary_max_concentration_mg_per_ml=secondary.max_concentration_mg_per_ml,
        desired_rate_ml_per_hr=request.desired_rate_ml_per_hr,
        dose_unit=request.dose_unit,
        target_total_volume_ml=target_volume,
        raw_active_volume_ml=raw_active,
        raw_secondary_volume_ml=raw_secondary,
        raw_filler_volume_ml=raw_filler,
    )

    if best is None:
        message = (
            f"Could not find volumes that meet the dose and "
            f"{secondary.agent.name} constraints with syringe increments."
        )
        logger.warning(message)
        alerts.append(
            PlanAlert(AlertSeverity.WARN, AlertKind.NO_FEASIBLE_COMBINATION, message)
        )
        return MultiComponentPlan(feasible=False, alerts=tuple(alerts), **plan_fields)

    draws = (
        DrawInstruction(request.active.name, active_syringe, best.active_volume_ml),
        DrawInstruction(
            secondary.agent.name, secondary_syringe, best.secondary_volume_ml
        ),
        DrawInstruction(request.filler_name, filler_syringe, best.filler_volume_ml),
    )
    alerts.extend(evaluate_fill_counts(draws, request.max_fills_per_component))

    final_volume = best.active_volume_ml + best.secondary_volume_ml + best.filler_volume_ml
    conc_error_pct = best.active_error * 100
    volume_error_pct = best.volume_error * 100
    alerts.extend(evaluate_tolerances(conc_error_pct, volume_error_pct, request.tolerance))

    range_alert = dose_range_alert(request.active, request.desired_dose, request.dose_unit)
    if range_alert is not None:
        alerts.append(range_alert)

    logger.info(
        f"Three-component plan: {best.active_volume_ml:.2f} mL {request.active.name} + "
        f"{best.secondary_volume_ml:.2f} mL {secondary.agent.name} + "
        f"{best.filler_volume_ml:.2f} mL {request.filler_name} = {final_volume:.2f} mL"
    )

    return MultiComponentPlan(
        feasible=True,
        alerts=tuple(alerts),
        draws=draws,
        snapped_active_volume_ml=best.active_volume_ml,
        snapped_secondary_volume_ml=best.secondary_volume_ml,
        snapped_filler_volume_ml=best.filler_volume_ml,
        final_total_volume_ml=final_volume,
        chosen_concentration_mg_per_ml=best.active_concentration,
        secondary_final_concentration_mg_per_ml=best.secondary_concentration,
        mapping_rate_ml_per_hr=compute_mapped_rate(
            request.desired_dose,
            request.dose_unit,
            request.weight_kg,
            best.active_concentration,
        ),
        delivered_dose_at_desired_rate=compute_delivered_dose(
            best.active_concentration,
            request.desired_rate_ml_per_hr,
            request.weight_kg,
            request.dose_unit,
        ),
        rel_concentration_error_pct=conc_error_pct,
        rel_secondary_error_pct=best.secondary_error * 100,
        rel_total_volume_error_pct=volume_error_pct,
        **plan_fields,
    )
