"""Computation module for Infusion Mixer.

This module handles:
- Unit normalization and dose conversion
- Feasibility of the rate-to-dose mapping
- Syringe selection and tick-snap search
- Plan assembly for two- and three-component mixtures
"""

from infusion_mixer.compute.feasibility import (
    FeasibilityResult,
    compute_delivered_dose,
    compute_mapped_rate,
    compute_needed_concentration,
    solve_feasibility,
)
from infusion_mixer.compute.multi_component import (
    compute_multi_component_plan,
    search_three_component,
)
from infusion_mixer.compute.planner import (
    compute_mixture_plan,
    compute_stock_only_plan,
    validate_mixture_request,
)
from infusion_mixer.compute.search import (
    VolumeCandidate,
    fallback_round,
    relative_error,
    search_snapped_volumes,
)
from infusion_mixer.compute.syringes import (
    choose_syringe_for_volume,
    count_fills,
    snap_to_increment,
)
from infusion_mixer.compute.tolerance import evaluate_fill_counts, evaluate_tolerances
from infusion_mixer.compute.units import (
    convert_dose,
    convert_from_mg_per_kg_hr,
    dose_unit_constant,
    normalize_concentration,
    to_mg_per_kg_hr,
)

__all__ = [
    # Units
    "dose_unit_constant",
    "normalize_concentration",
    "to_mg_per_kg_hr",
    "convert_from_mg_per_kg_hr",
    "convert_dose",
    # Feasibility
    "FeasibilityResult",
    "compute_needed_concentration",
    "compute_mapped_rate",
    "compute_delivered_dose",
    "solve_feasibility",
    # Syringes and search
    "choose_syringe_for_volume",
    "count_fills",
    "snap_to_increment",
    "VolumeCandidate",
    "relative_error",
    "search_snapped_volumes",
    "fallback_round",
    # Tolerance
    "evaluate_tolerances",
    "evaluate_fill_counts",
    # Plans
    "validate_mixture_request",
    "compute_mixture_plan",
    "compute_stock_only_plan",
    "search_three_component",
    "compute_multi_component_plan",
]
