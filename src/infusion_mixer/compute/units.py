"""Unit normalization for stock concentrations and dose rates.

Every calculation in the planner works on one canonical basis:
- Concentrations in mg/mL
- Doses in mg/kg/hr

Conversion is exact multiplicative scaling; nothing is rounded here.
"""

import logging

from infusion_mixer.models import Concentration, ConcentrationUnit, DoseUnit, Medication

logger = logging.getLogger(__name__)

# Multiplier taking a dose in the given unit to mg/kg/hr
DOSE_UNIT_FACTORS: dict[DoseUnit, float] = {
    DoseUnit.MG_PER_KG_HR: 1.0,
    DoseUnit.MG_PER_KG_MIN: 60.0,
    DoseUnit.MG_PER_KG_DAY: 1.0 / 24.0,
    DoseUnit.MCG_PER_KG_HR: 1.0 / 1000.0,
    DoseUnit.MCG_PER_KG_MIN: 60.0 / 1000.0,
}

# Divisor taking a concentration in the given unit to mg/mL
CONCENTRATION_UNIT_DIVISORS: dict[ConcentrationUnit, float] = {
    ConcentrationUnit.MG_PER_ML: 1.0,
    ConcentrationUnit.MCG_PER_ML: 1000.0,
}


def dose_unit_constant(dose_unit: DoseUnit) -> float:
    """Return the factor converting dose_unit to mg/kg/hr.

    Args:
        dose_unit: Unit the dose is expressed in.

    Returns:
        Multiplicative conversion constant.
    """
    return DOSE_UNIT_FACTORS[DoseUnit(dose_unit)]


def normalize_concentration(concentration: Concentration) -> float:
    """Convert a labelled concentration to mg/mL."""
    divisor = CONCENTRATION_UNIT_DIVISORS[ConcentrationUnit(concentration.units)]
    return concentration.value / divisor


def stock_concentration_mg_per_ml(medication: Medication) -> float:
    """Normalized stock concentration of a medication, in mg/mL."""
    return normalize_concentration(medication.concentration)


def to_mg_per_kg_hr(dose: float, dose_unit: DoseUnit) -> float:
    """Convert a dose in any supported rate unit to mg/kg/hr."""
    return dose * dose_unit_constant(dose_unit)


def convert_from_mg_per_kg_hr(dose_mg_per_kg_hr: float, dose_unit: DoseUnit) -> float:
    """Express a canonical mg/kg/hr dose in another rate unit."""
    return dose_mg_per_kg_hr / dose_unit_constant(dose_unit)


def convert_dose(dose: float, from_unit: DoseUnit, to_unit: DoseUnit) -> float:
    """Convert a dose between two supported rate units.

    Example: 5 mcg/kg/min -> 0.3 mg/kg/hr

    Args:
        dose: Dose value in from_unit.
        from_unit: Unit of the given dose.
        to_unit: Desired output unit.

    Returns:
        Dose value in to_unit.
    """
    if from_unit == to_unit:
        return dose
    return convert_from_mg_per_kg_hr(to_mg_per_kg_hr(dose, from_unit), to_unit)
