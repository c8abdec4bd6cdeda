"""Feasibility of diluting a stock to the concentration a dose mapping needs.

The mapping ties pump rate to dose: at the desired rate, the pump should
deliver exactly the desired dose. That fixes the concentration:

    C_needed = (U × dose × weight) / rate      (mg/mL)

where U converts the dose unit to mg/kg/hr. Dilution can only lower a
concentration, so when C_needed exceeds the stock concentration S the
target is capped at S and the plan reports the rate that full-strength
stock would need instead:

    r_map = (U × dose × weight) / S            (mL/hr)
"""

import logging
import math
from dataclasses import dataclass

from infusion_mixer.compute.units import dose_unit_constant
from infusion_mixer.models import AlertKind, AlertSeverity, DoseUnit, PlanAlert

logger = logging.getLogger(__name__)

# Slack allowed before C_needed counts as stronger than stock
FEASIBILITY_EPSILON = 1e-9


@dataclass(frozen=True)
class FeasibilityResult:
    """Outcome of comparing the needed concentration with the stock.

    Attributes:
        needed_concentration_mg_per_ml: Concentration making rate equal dose.
        target_concentration_mg_per_ml: Needed concentration, capped at stock.
        feasible_at_desired_rate: False when the stock is too weak.
        mapped_rate_ml_per_hr: Rate delivering the dose with undiluted stock,
            only set when infeasible.
        alert: Stock-too-weak alert, only set when infeasible.
    """

    needed_concentration_mg_per_ml: float
    target_concentration_mg_per_ml: float
    feasible_at_desired_rate: bool
    mapped_rate_ml_per_hr: float | None = None
    alert: PlanAlert | None = None


def compute_needed_concentration(
    dose: float,
    dose_unit: DoseUnit,
    weight_kg: float,
    rate_ml_per_hr: float,
) -> float:
    """Concentration (mg/mL) at which rate_ml_per_hr delivers the dose."""
    return (dose_unit_constant(dose_unit) * dose * weight_kg) / rate_ml_per_hr


def compute_mapped_rate(
    dose: float,
    dose_unit: DoseUnit,
    weight_kg: float,
    concentration_mg_per_ml: float,
) -> float:
    """Pump rate (mL/hr) that delivers the dose at a given concentration.

    Returns 0 for a zero dose and infinity when a positive dose must be
    delivered from a zero concentration.
    """
    mass_rate = dose_unit_constant(dose_unit) * dose * weight_kg
    if concentration_mg_per_ml <= 0:
        return 0.0 if mass_rate == 0 else math.inf
    return mass_rate / concentration_mg_per_ml


def compute_delivered_dose(
    concentration_mg_per_ml: float,
    rate_ml_per_hr: float,
    weight_kg: float,
    dose_unit: DoseUnit,
) -> float:
    """Dose, in dose_unit, delivered by running a concentration at a rate.

    Formula:
        D = (C × r) / (U × W)
    """
    return (concentration_mg_per_ml * rate_ml_per_hr) / (
        dose_unit_constant(dose_unit) * weight_kg
    )


def solve_feasibility(
    dose: float,
    dose_unit: DoseUnit,
    weight_kg: float,
    desired_rate_ml_per_hr: float,
    stock_mg_per_ml: float,
) -> FeasibilityResult:
    """Derive the target concentration and whether dilution can reach it.

    Args:
        dose: Desired dose in dose_unit.
        dose_unit: Unit of the dose.
        weight_kg: Patient weight.
        desired_rate_ml_per_hr: Pump rate that should equal the dose.
        stock_mg_per_ml: Normalized stock concentration.

    Returns:
        FeasibilityResult; never raises for a weak stock.
    """
    needed = compute_needed_concentration(
        dose, dose_unit, weight_kg, desired_rate_ml_per_hr
    )

    if needed - stock_mg_per_ml <= FEASIBILITY_EPSILON:
        logger.debug(
            f"Needed concentration {needed:.6g} mg/mL is reachable from "
            f"{stock_mg_per_ml:.6g} mg/mL stock"
        )
        return FeasibilityResult(
            needed_concentration_mg_per_ml=needed,
            target_concentration_mg_per_ml=needed,
            feasible_at_desired_rate=True,
        )

    mapped_rate = compute_mapped_rate(dose, dose_unit, weight_kg, stock_mg_per_ml)
    unit = DoseUnit(dose_unit).value
    message = (
        f"Stock too weak to achieve mapping at {desired_rate_ml_per_hr:g} mL/hr. "
        f"Use {mapped_rate:.3f} mL/hr for {dose:g} {unit} instead, "
        "or get stronger stock."
    )
    logger.warning(
        f"Needed {needed:.6g} mg/mL exceeds stock {stock_mg_per_ml:.6g} mg/mL; "
        f"capping at stock, mapped rate {mapped_rate:.3f} mL/hr"
    )

    return FeasibilityResult(
        needed_concentration_mg_per_ml=needed,
        target_concentration_mg_per_ml=stock_mg_per_ml,
        feasible_at_desired_rate=False,
        mapped_rate_ml_per_hr=mapped_rate,
        alert=PlanAlert(AlertSeverity.WARN, AlertKind.STOCK_TOO_WEAK, message),
    )
