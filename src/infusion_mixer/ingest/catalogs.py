"""Reference catalog loading: file -> validated -> model objects.

Data Source:
- Primary: <catalog_dir>/syringes.csv and <catalog_dir>/medications.csv
- Fallback: built-in defaults from infusion_mixer.catalog (used only when
  a file is absent; a present but invalid file is an error)
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from infusion_mixer.catalog import DEFAULT_MEDICATIONS, DEFAULT_SYRINGES
from infusion_mixer.ingest.loaders import load_file_auto
from infusion_mixer.ingest.normalizers import (
    MEDICATION_COLUMN_MAP,
    SYRINGE_COLUMN_MAP,
    normalize_medication_catalog,
    normalize_syringe_catalog,
    standardize_columns,
)
from infusion_mixer.ingest.validators import (
    ValidationResult,
    validate_medication_catalog_schema,
    validate_medication_values,
    validate_syringe_catalog_schema,
    validate_syringe_values,
)
from infusion_mixer.models import CatalogLoadError, Medication, Syringe

logger = logging.getLogger(__name__)

SYRINGE_CATALOG_FILENAME = "syringes.csv"
MEDICATION_CATALOG_FILENAME = "medications.csv"


@dataclass(frozen=True)
class ReferenceCatalogs:
    """Syringes and medications available to planners."""

    syringes: tuple[Syringe, ...]
    medications: tuple[Medication, ...]


def _raise_if_invalid(result: ValidationResult, path: Path) -> None:
    for warning in result.warnings:
        logger.warning(f"{path}: {warning}")
    if not result.is_valid:
        details = "; ".join(result.errors)
        raise CatalogLoadError(
            f"{path}: {result.message}" + (f" ({details})" if details else "")
        )


def load_syringe_catalog(path: Path | str) -> tuple[Syringe, ...]:
    """Load, validate and normalize a syringe catalog file.

    Args:
        path: CSV or Excel file.

    Returns:
        Syringes in file order.

    Raises:
        CatalogLoadError: If the file cannot be read or fails validation.
    """
    path = Path(path)
    df = standardize_columns(load_file_auto(path), SYRINGE_COLUMN_MAP)
    _raise_if_invalid(validate_syringe_catalog_schema(df), path)
    _raise_if_invalid(validate_syringe_values(df), path)
    return normalize_syringe_catalog(df)


def load_medication_catalog(path: Path | str) -> tuple[Medication, ...]:
    """Load, validate and normalize a medication catalog file.

    Args:
        path: CSV or Excel file.

    Returns:
        Medications in file order.

    Raises:
        CatalogLoadError: If the file cannot be read or fails validation.
    """
    path = Path(path)
    df = standardize_columns(load_file_auto(path), MEDICATION_COLUMN_MAP)
    _raise_if_invalid(validate_medication_catalog_schema(df), path)
    _raise_if_invalid(validate_medication_values(df), path)
    return normalize_medication_catalog(df)


def load_reference_catalogs(catalog_dir: Path | str | None = None) -> ReferenceCatalogs:
    """Load both catalogs from a directory, defaulting missing files.

    Args:
        catalog_dir: Directory holding syringes.csv / medications.csv.
            If None, the built-in defaults are returned.

    Returns:
        ReferenceCatalogs with file-backed or default entries.

    Raises:
        CatalogLoadError: If a present file is unreadable or invalid.
    """
    if catalog_dir is None:
        return ReferenceCatalogs(DEFAULT_SYRINGES, DEFAULT_MEDICATIONS)

    catalog_dir = Path(catalog_dir)

    syringe_path = catalog_dir / SYRINGE_CATALOG_FILENAME
    if syringe_path.exists():
        syringes = load_syringe_catalog(syringe_path)
        logger.info(f"Loaded {len(syringes)} syringes from {syringe_path}")
    else:
        logger.warning(f"Syringe catalog not found at {syringe_path}, using defaults")
        syringes = DEFAULT_SYRINGES

    medication_path = catalog_dir / MEDICATION_CATALOG_FILENAME
    if medication_path.exists():
        medications = load_medication_catalog(medication_path)
        logger.info(f"Loaded {len(medications)} medications from {medication_path}")
    else:
        logger.warning(
            f"Medication catalog not found at {medication_path}, using defaults"
        )
        medications = DEFAULT_MEDICATIONS

    return ReferenceCatalogs(syringes=syringes, medications=medications)
