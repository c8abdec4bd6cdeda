"""Normalization of raw catalog data into model objects.

This module handles:
- Column mapping/renaming for differently-exported catalogs
- Unit string parsing into the closed unit enums
- DataFrame rows -> Syringe / Medication
- Fuzzy medication name matching
"""

import logging
from collections.abc import Sequence

import polars as pl
from thefuzz import fuzz  # type: ignore[import-untyped]

from infusion_mixer.models import (
    Concentration,
    ConcentrationUnit,
    DoseRange,
    DoseUnit,
    Medication,
    Syringe,
    UnknownUnitError,
)

logger = logging.getLogger(__name__)

# Maps raw column names to standardized names
SYRINGE_COLUMN_MAP = {
    "ID": "id",
    "Syringe": "id",
    "sizeCc": "size_ml",
    "Size (cc)": "size_ml",
    "Size (mL)": "size_ml",
    "size_cc": "size_ml",
    "incrementMl": "increment_ml",
    "Increment (mL)": "increment_ml",
    "Label": "label",
}

MEDICATION_COLUMN_MAP = {
    "ID": "id",
    "Name": "name",
    "Drug Name": "name",
    "Concentration": "concentration",
    "Units": "units",
    "Notes": "notes",
    "CRI Min (mg/kg/hr)": "cri_min_mg_per_kg_hr",
    "CRI Max (mg/kg/hr)": "cri_max_mg_per_kg_hr",
}

_CONCENTRATION_UNIT_ALIASES = {
    "mg/ml": ConcentrationUnit.MG_PER_ML,
    "mcg/ml": ConcentrationUnit.MCG_PER_ML,
}

_DOSE_UNIT_ALIASES = {
    "mg/kg/hr": DoseUnit.MG_PER_KG_HR,
    "mg/kg/min": DoseUnit.MG_PER_KG_MIN,
    "mg/kg/day": DoseUnit.MG_PER_KG_DAY,
    "mcg/kg/hr": DoseUnit.MCG_PER_KG_HR,
    "mcg/kg/min": DoseUnit.MCG_PER_KG_MIN,
}


_UNIT_TOKEN_ALIASES = {
    "ug": "mcg",
    "h": "hr",
    "hour": "hr",
    "minute": "min",
    "d": "day",
}


def _canonical_unit_text(unit: str) -> str:
    text = unit.strip().lower().replace(" ", "").replace("µ", "u").replace("μ", "u")
    return "/".join(_UNIT_TOKEN_ALIASES.get(token, token) for token in text.split("/"))


def parse_concentration_unit(unit: str) -> ConcentrationUnit:
    """Parse a concentration unit string ("mg/mL", "µg/mL", ...).

    Raises:
        UnknownUnitError: If the string names no supported unit.
    """
    parsed = _CONCENTRATION_UNIT_ALIASES.get(_canonical_unit_text(unit))
    if parsed is None:
        raise UnknownUnitError(f"Unknown concentration unit: {unit!r}")
    return parsed


def parse_dose_unit(unit: str) -> DoseUnit:
    """Parse a dose-rate unit string ("mcg/kg/min", "mg/kg/h", ...).

    Raises:
        UnknownUnitError: If the string names no supported unit.
    """
    parsed = _DOSE_UNIT_ALIASES.get(_canonical_unit_text(unit))
    if parsed is None:
        raise UnknownUnitError(f"Unknown dose unit: {unit!r}")
    return parsed


def standardize_columns(df: pl.DataFrame, column_map: dict[str, str]) -> pl.DataFrame:
    """Rename raw columns to their standard names.

    A raw column is only renamed when its target name is not already present.
    """
    renames: dict[str, str] = {}
    for old_name, new_name in column_map.items():
        if (
            old_name in df.columns
            and new_name not in df.columns
            and new_name not in renames.values()
        ):
            renames[old_name] = new_name
    if renames:
        logger.debug(f"Renaming columns: {renames}")
        df = df.rename(renames)
    return df


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_syringe_catalog(df: pl.DataFrame) -> tuple[Syringe, ...]:
    """Convert a syringe catalog DataFrame into Syringe objects.

    Args:
        df: DataFrame with id, size_ml, increment_ml and optional label.

    Returns:
        Syringes in row order.

    Raises:
        InvalidSyringeError: If a row breaks the size/increment invariant.
    """
    df = standardize_columns(df, SYRINGE_COLUMN_MAP)
    has_label = "label" in df.columns

    syringes = tuple(
        Syringe(
            id=str(row["id"]),
            size_ml=float(row["size_ml"]),
            increment_ml=float(row["increment_ml"]),
            label=_optional_text(row["label"]) if has_label else None,
        )
        for row in df.iter_rows(named=True)
    )

    logger.info(f"Normalized {len(syringes)} syringes")
    return syringes


def normalize_medication_catalog(df: pl.DataFrame) -> tuple[Medication, ...]:
    """Convert a medication catalog DataFrame into Medication objects.

    A CRI dose range is attached only when both bounds are present.

    Args:
        df: DataFrame with id, name, concentration, units and optional
            notes / cri_min_mg_per_kg_hr / cri_max_mg_per_kg_hr.

    Returns:
        Medications in row order.

    Raises:
        UnknownUnitError: If a units value cannot be parsed.
    """
    df = standardize_columns(df, MEDICATION_COLUMN_MAP)
    columns = set(df.columns)

    medications = []
    for row in df.iter_rows(named=True):
        dose_range = None
        low = row.get("cri_min_mg_per_kg_hr")
        high = row.get("cri_max_mg_per_kg_hr")
        if low is not None and high is not None:
            dose_range = DoseRange(float(low), float(high))

        medications.append(
            Medication(
                id=str(row["id"]),
                name=str(row["name"]).strip(),
                concentration=Concentration(
                    value=float(row["concentration"]),
                    units=parse_concentration_unit(str(row["units"])),
                ),
                notes=_optional_text(row["notes"]) if "notes" in columns else None,
                cri_dose_range=dose_range,
            )
        )

    logger.info(f"Normalized {len(medications)} medications")
    return tuple(medications)


def fuzzy_match_medication(
    name: str,
    medications: Sequence[Medication],
    threshold: int = 80,
) -> Medication | None:
    """Find the medication whose name best matches a free-text name.

    Args:
        name: Name to match (case-insensitive).
        medications: Candidate medications.
        threshold: Minimum similarity score (0-100).

    Returns:
        Best matching medication, or None if no match above threshold.
        Ties go to the earlier catalog entry.
    """
    if not name or not medications:
        return None

    best_match = None
    best_score = 0

    name_upper = name.upper()
    for medication in medications:
        score = fuzz.ratio(name_upper, medication.name.upper())
        if score > best_score and score >= threshold:
            best_score = score
            best_match = medication

    if best_match:
        logger.debug(f"Fuzzy match '{name}' -> '{best_match.name}' (score: {best_score})")

    return best_match


def fuzzy_match_medication_partial(
    name: str,
    medications: Sequence[Medication],
    threshold: int = 70,
) -> Medication | None:
    """Find the best partial fuzzy match for a medication name.

    Uses partial ratio, which suits names where one string contains the
    other (e.g. "NOREPI" in "NOREPINEPHRINE").

    Args:
        name: Name to match (case-insensitive).
        medications: Candidate medications.
        threshold: Minimum similarity score (0-100).

    Returns:
        Best matching medication, or None if no match above threshold.
    """
    if not name or not medications:
        return None

    best_match = None
    best_score = 0

    name_upper = name.upper()
    for medication in medications:
        score = fuzz.partial_ratio(name_upper, medication.name.upper())
        if score > best_score and score >= threshold:
            best_score = score
            best_match = medication

    if best_match:
        logger.debug(
            f"Partial match '{name}' -> '{best_match.name}' (score: {best_score})"
        )

    return best_match
