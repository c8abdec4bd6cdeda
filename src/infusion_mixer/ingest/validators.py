"""Schema and value validation for syringe and medication catalogs."""

import logging
from dataclasses import dataclass, field

import polars as pl

from infusion_mixer.ingest.normalizers import parse_concentration_unit
from infusion_mixer.models import UnknownUnitError

logger = logging.getLogger(__name__)

SYRINGE_REQUIRED_COLUMNS = {"id", "size_ml", "increment_ml"}
SYRINGE_OPTIONAL_COLUMNS = {"label"}

MEDICATION_REQUIRED_COLUMNS = {"id", "name", "concentration", "units"}
MEDICATION_OPTIONAL_COLUMNS = {"notes", "cri_min_mg_per_kg_hr", "cri_max_mg_per_kg_hr"}


@dataclass
class ValidationResult:
    """Result of a catalog validation check.

    Attributes:
        is_valid: Whether the validation passed.
        message: Human-readable description of the result.
        missing_columns: List of required columns that are missing.
        row_count: Number of rows in the validated DataFrame.
        warnings: List of non-fatal issues detected.
        errors: Row-level problems that made the check fail.
    """

    is_valid: bool
    message: str
    missing_columns: list[str] = field(default_factory=list)
    row_count: int = 0
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _validate_schema(
    df: pl.DataFrame,
    catalog_name: str,
    required: set[str],
    optional: set[str],
) -> ValidationResult:
    columns = set(df.columns)
    missing = required - columns

    if missing:
        return ValidationResult(
            is_valid=False,
            message=f"{catalog_name} missing required columns: {sorted(missing)}",
            missing_columns=sorted(missing),
            row_count=df.height,
        )

    if df.height == 0:
        return ValidationResult(
            is_valid=False,
            message=f"{catalog_name} has no rows",
            row_count=0,
        )

    warnings = []
    missing_optional = optional - columns
    if missing_optional:
        warnings.append(
            f"{catalog_name} missing optional columns: {sorted(missing_optional)}"
        )

    return ValidationResult(
        is_valid=True,
        message=f"{catalog_name} schema valid with {df.height} rows",
        row_count=df.height,
        warnings=warnings,
    )


def validate_syringe_catalog_schema(df: pl.DataFrame) -> ValidationResult:
    """Validate syringe catalog schema.

    Must contain id, size_ml and increment_ml columns and at least one row.

    Args:
        df: DataFrame to validate.

    Returns:
        ValidationResult with status and details.
    """
    return _validate_schema(
        df, "Syringe catalog", SYRINGE_REQUIRED_COLUMNS, SYRINGE_OPTIONAL_COLUMNS
    )


def validate_medication_catalog_schema(df: pl.DataFrame) -> ValidationResult:
    """Validate medication catalog schema.

    Must contain id, name, concentration and units columns and at least one row.

    Args:
        df: DataFrame to validate.

    Returns:
        ValidationResult with status and details.
    """
    return _validate_schema(
        df,
        "Medication catalog",
        MEDICATION_REQUIRED_COLUMNS,
        MEDICATION_OPTIONAL_COLUMNS,
    )


def _duplicate_ids(df: pl.DataFrame) -> list[str]:
    counts = df.group_by("id").len()
    return sorted(str(i) for i in counts.filter(pl.col("len") > 1)["id"].to_list())


def _non_numeric_result(
    df: pl.DataFrame, catalog_name: str, columns: list[str]
) -> ValidationResult | None:
    bad = [
        col
        for col in columns
        if col in df.columns
        and df[col].dtype != pl.Null
        and not df[col].dtype.is_numeric()
    ]
    if not bad:
        return None
    return ValidationResult(
        is_valid=False,
        message=f"{catalog_name} has non-numeric columns: {bad}",
        row_count=df.height,
        errors=[f"Column {col} must be numeric, got {df[col].dtype}" for col in bad],
    )


def validate_syringe_values(df: pl.DataFrame) -> ValidationResult:
    """Check every syringe row is physically meaningful.

    - increment_ml > 0
    - size_ml >= increment_ml
    - ids are unique

    Args:
        df: Syringe catalog with a valid schema.

    Returns:
        ValidationResult listing offending rows in errors.
    """
    invalid = _non_numeric_result(df, "Syringe catalog", ["size_ml", "increment_ml"])
    if invalid is not None:
        return invalid

    errors: list[str] = []

    for row in df.iter_rows(named=True):
        syringe_id = row.get("id")
        size = row.get("size_ml")
        increment = row.get("increment_ml")
        if size is None or increment is None:
            errors.append(f"Syringe {syringe_id}: size_ml and increment_ml are required")
            continue
        if increment <= 0:
            errors.append(f"Syringe {syringe_id}: increment_ml must be > 0")
        elif size < increment:
            errors.append(f"Syringe {syringe_id}: size_ml is smaller than increment_ml")

    duplicates = _duplicate_ids(df)
    if duplicates:
        errors.append(f"Duplicate syringe ids: {duplicates}")

    if errors:
        logger.warning(f"Syringe catalog has {len(errors)} invalid entries")
        return ValidationResult(
            is_valid=False,
            message=f"Syringe catalog has {len(errors)} invalid entries",
            row_count=df.height,
            errors=errors,
        )

    return ValidationResult(
        is_valid=True,
        message=f"All {df.height} syringes valid",
        row_count=df.height,
    )


def validate_medication_values(df: pl.DataFrame) -> ValidationResult:
    """Check every medication row has a usable concentration.

    - concentration > 0
    - units names a supported concentration unit
    - CRI range, when given, has min <= max
    - ids are unique

    Args:
        df: Medication catalog with a valid schema.

    Returns:
        ValidationResult listing offending rows in errors.
    """
    invalid = _non_numeric_result(
        df,
        "Medication catalog",
        ["concentration", "cri_min_mg_per_kg_hr", "cri_max_mg_per_kg_hr"],
    )
    if invalid is not None:
        return invalid

    errors: list[str] = []
    has_range = {"cri_min_mg_per_kg_hr", "cri_max_mg_per_kg_hr"} <= set(df.columns)

    for row in df.iter_rows(named=True):
        medication_id = row.get("id")
        concentration = row.get("concentration")
        if concentration is None or concentration <= 0:
            errors.append(f"Medication {medication_id}: concentration must be > 0")

        try:
            parse_concentration_unit(str(row.get("units")))
        except UnknownUnitError as e:
            errors.append(f"Medication {medication_id}: {e}")

        if has_range:
            low = row.get("cri_min_mg_per_kg_hr")
            high = row.get("cri_max_mg_per_kg_hr")
            if low is not None and high is not None and low > high:
                errors.append(
                    f"Medication {medication_id}: CRI range minimum exceeds maximum"
                )

    duplicates = _duplicate_ids(df)
    if duplicates:
        errors.append(f"Duplicate medication ids: {duplicates}")

    if errors:
        logger.warning(f"Medication catalog has {len(errors)} invalid entries")
        return ValidationResult(
            is_valid=False,
            message=f"Medication catalog has {len(errors)} invalid entries",
            row_count=df.height,
            errors=errors,
        )

    return ValidationResult(
        is_valid=True,
        message=f"All {df.height} medications valid",
        row_count=df.height,
    )
