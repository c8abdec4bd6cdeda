"""Mixing plan assembly: dose request -> realizable syringe draws.

Pipeline (each step a pure function of the previous ones):
1. Normalize stock concentration and dose unit
2. Solve feasibility (needed vs stock concentration, capped target)
3. Size the bag: target volume = duration × planning rate
4. Pick a syringe for the raw stock and raw diluent volumes
5. Tick-snap search, or fallback rounding if nothing is admissible
6. Report tolerance and fill-count exceedances
7. Package everything into an immutable MixturePlan

Invariants of every returned plan:
- final_total_volume_ml == snapped_stock_volume_ml + snapped_diluent_volume_ml
- chosen_concentration_mg_per_ml == S × snapped_stock / final_total
"""

import logging
from collections.abc import Sequence

from infusion_mixer.compute.feasibility import (
    compute_delivered_dose,
    compute_mapped_rate,
    solve_feasibility,
)
from infusion_mixer.compute.preconditions import (
    require_count,
    require_non_negative,
    require_positive,
    require_syringes,
    require_tolerance,
    require_weights,
)
from infusion_mixer.compute.search import (
    FALLBACK_ROUNDING_MESSAGE,
    fallback_round,
    relative_error,
    search_snapped_volumes,
)
from infusion_mixer.compute.syringes import choose_syringe_for_volume, snap_to_increment
from infusion_mixer.compute.tolerance import evaluate_fill_counts, evaluate_tolerances
from infusion_mixer.compute.units import (
    convert_from_mg_per_kg_hr,
    stock_concentration_mg_per_ml,
    to_mg_per_kg_hr,
)
from infusion_mixer.models import (
    AlertKind,
    AlertSeverity,
    DoseUnit,
    DrawInstruction,
    Medication,
    MixturePlan,
    MixtureRequest,
    PlanAlert,
    StockOnlyPlan,
    Syringe,
)

logger = logging.getLogger(__name__)

STOCK_LIQUID = "stock"
DILUENT_LIQUID = "diluent"


def validate_mixture_request(request: MixtureRequest) -> None:
    """Check the hard preconditions of a mixing request.

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
        "medication concentration", stock_concentration_mg_per_ml(request.medication)
    )
    require_syringes(request.syringes)
    require_tolerance(request.tolerance)
    require_count("search.max_fills_per_liquid", request.search.max_fills_per_liquid, 1)
    require_count("search.span_steps", request.search.span_steps, 0)
    require_weights(
        "search weights", (request.search.conc_weight, request.search.volume_weight)
    )


def dose_range_alert(
    medication: Medication,
    dose: float,
    dose_unit: DoseUnit,
) -> PlanAlert | None:
    """Advisory alert when a dose falls outside the medication's CRI range."""
    dose_range = medication.cri_dose_range
    if dose_range is None:
        return None
    dose_mg_per_kg_hr = to_mg_per_kg_hr(dose, dose_unit)
    if dose_range.contains(dose_mg_per_kg_hr):
        return None
    return PlanAlert(
        AlertSeverity.INFO,
        AlertKind.DOSE_OUTSIDE_RANGE,
        f"Dose {dose_mg_per_kg_hr:.4g} mg/kg/hr is outside the typical range "
        f"{dose_range.min_mg_per_kg_hr:g}-{dose_range.max_mg_per_kg_hr:g} "
        f"mg/kg/hr for {medication.name}.",
    )


def compute_mixture_plan(request: MixtureRequest) -> MixturePlan:
    """Turn an infusion request into stock and diluent draws.

    Args:
        request: Patient, medication, dose, pump rate, duration, syringe
            catalog and search/tolerance configuration.

    Returns:
        Immutable MixturePlan. Weak stock, fallback rounding and tolerance
        exceedances are reported as alerts, never raised.

    Raises:
        InvalidRequestError: If a hard precondition fails.
    """
    validate_mixture_request(request)
    alerts: list[PlanAlert] = []

    stock_mg = stock_concentration_mg_per_ml(request.medication)

    feasibility = solve_feasibility(
        request.desired_dose,
        request.dose_unit,
        request.weight_kg,
        request.desired_rate_ml_per_hr,
        stock_mg,
    )
    if feasibility.alert is not None:
        alerts.append(feasibility.alert)
    target_conc = feasibility.target_concentration_mg_per_ml

    planning_rate = request.planning_rate_ml_per_hr or request.desired_rate_ml_per_hr
    target_volume = request.desired_duration_hr * planning_rate

    raw_stock = (target_conc / stock_mg) * target_volume
    raw_diluent = target_volume - raw_stock

    stock_syringe = choose_syringe_for_volume(raw_stock, request.syringes)
    diluent_syringe = choose_syringe_for_volume(raw_diluent, request.syringes)

    best = search_snapped_volumes(
        stock_mg,
        target_conc,
        target_volume,
        stock_syringe,
        diluent_syringe,
        request.search,
    )

    used_fallback = best is None
    if best is None:
        best = fallback_round(
            raw_stock,
            stock_mg,
            target_conc,
            target_volume,
            stock_syringe,
            diluent_syringe,
            request.search,
        )
        alerts.append(
            PlanAlert(
                AlertSeverity.INFO,
                AlertKind.FALLBACK_ROUNDING,
                FALLBACK_ROUNDING_MESSAGE,
            )
        )

    stock_draw = DrawInstruction(STOCK_LIQUID, stock_syringe, best.stock_volume_ml)
    diluent_draw = DrawInstruction(
        DILUENT_LIQUID, diluent_syringe, best.diluent_volume_ml
    )
    alerts.extend(
        evaluate_fill_counts(
            (stock_draw, diluent_draw), request.search.max_fills_per_liquid
        )
    )

    final_volume = best.stock_volume_ml + best.diluent_volume_ml
    chosen_conc = best.concentration_mg_per_ml
    conc_error_pct = relative_error(chosen_conc, target_conc) * 100
    volume_error_pct = relative_error(final_volume, target_volume) * 100

    alerts.extend(evaluate_tolerances(conc_error_pct, volume_error_pct, request.tolerance))

    range_alert = dose_range_alert(
        request.medication, request.desired_dose, request.dose_unit
    )
    if range_alert is not None:
        alerts.append(range_alert)

    plan = MixturePlan(
        feasible_at_desired_rate=feasibility.feasible_at_desired_rate,
        alerts=tuple(alerts),
        needed_concentration_mg_per_ml=feasibility.needed_concentration_mg_per_ml,
        target_concentration_mg_per_ml=target_conc,
        chosen_concentration_mg_per_ml=chosen_conc,
        stock_concentration_mg_per_ml=stock_mg,
        desired_rate_ml_per_hr=request.desired_rate_ml_per_hr,
        mapping_rate_ml_per_hr=compute_mapped_rate(
            request.desired_dose, request.dose_unit, request.weight_kg, chosen_conc
        ),
        delivered_dose_at_desired_rate=compute_delivered_dose(
            chosen_conc,
            request.desired_rate_ml_per_hr,
            request.weight_kg,
            request.dose_unit,
        ),
        dose_unit=request.dose_unit,
        target_total_volume_ml=target_volume,
        final_total_volume_ml=final_volume,
        raw_stock_volume_ml=raw_stock,
        raw_diluent_volume_ml=raw_diluent,
        snapped_stock_volume_ml=best.stock_volume_ml,
        snapped_diluent_volume_ml=best.diluent_volume_ml,
        stock_draw=stock_draw,
        diluent_draw=diluent_draw,
        rel_concentration_error_pct=conc_error_pct,
        rel_total_volume_error_pct=volume_error_pct,
        used_fallback_rounding=used_fallback,
    )

    logger.info(
        f"Mixture plan for {request.medication.name}: "
        f"{plan.snapped_stock_volume_ml:.2f} mL stock + "
        f"{plan.snapped_diluent_volume_ml:.2f} mL diluent = "
        f"{final_volume:.2f} mL @ {chosen_conc:.4g} mg/mL "
        f"({len(alerts)} alert(s))"
    )

    return plan


def compute_stock_only_plan(
    weight_kg: float,
    medication: Medication,
    desired_dose: float,
    dose_unit: DoseUnit,
    duration_hr: float,
    syringes: Sequence[Syringe],
) -> StockOnlyPlan:
    """Plan an undiluted infusion: derive the pump rate from the stock.

    Formula:
        rate = (U × dose × weight) / S
        volume = rate × duration, snapped to the chosen syringe increment

    Args:
        weight_kg: Patient weight.
        medication: Stock to run undiluted.
        desired_dose: Dose in dose_unit (> 0).
        dose_unit: Unit of desired_dose.
        duration_hr: How long the drawn volume should last.
        syringes: Available syringes.

    Returns:
        StockOnlyPlan with the single draw and derived pump rate.

    Raises:
        InvalidRequestError: If a hard precondition fails.
    """
    require_positive("weight_kg", weight_kg)
    require_positive("desired_dose", desired_dose)
    require_positive("duration_hr", duration_hr)
    require_syringes(syringes)
    stock_mg = stock_concentration_mg_per_ml(medication)
    require_positive("medication concentration", stock_mg)

    rate = compute_mapped_rate(desired_dose, dose_unit, weight_kg, stock_mg)
    target_volume = rate * duration_hr
    syringe = choose_syringe_for_volume(target_volume, syringes)
    draw = DrawInstruction(
        STOCK_LIQUID, syringe, snap_to_increment(target_volume, syringe.increment_ml)
    )

    delivered_mg_per_kg_hr = (rate * stock_mg) / weight_kg

    alerts: list[PlanAlert] = []
    range_alert = dose_range_alert(medication, desired_dose, dose_unit)
    if range_alert is not None:
        alerts.append(range_alert)

    logger.info(
        f"Stock-only plan for {medication.name}: {rate:.3f} mL/hr, "
        f"draw {draw.volume_ml:.2f} mL with {syringe.id} ({draw.fills} fill(s))"
    )

    return StockOnlyPlan(
        alerts=tuple(alerts),
        stock_concentration_mg_per_ml=stock_mg,
        rate_ml_per_hr=rate,
        target_volume_ml=target_volume,
        draw=draw,
        delivered_dose_mg_per_kg_hr=delivered_mg_per_kg_hr,
        delivered_dose=convert_from_mg_per_kg_hr(delivered_mg_per_kg_hr, dose_unit),
        dose_unit=dose_unit,
    )
