"""Data ingestion module for Infusion Mixer.

This module handles:
- Loading syringe and medication catalog files
- Validating catalog schemas and values
- Normalizing rows into model objects
"""

from infusion_mixer.ingest.catalogs import (
    ReferenceCatalogs,
    load_medication_catalog,
    load_reference_catalogs,
    load_syringe_catalog,
)
from infusion_mixer.ingest.loaders import (
    detect_file_type,
    load_csv_to_polars,
    load_excel_to_polars,
    load_file_auto,
)
from infusion_mixer.ingest.normalizers import (
    fuzzy_match_medication,
    fuzzy_match_medication_partial,
    normalize_medication_catalog,
    normalize_syringe_catalog,
    parse_concentration_unit,
    parse_dose_unit,
    standardize_columns,
)
from infusion_mixer.ingest.validators import (
    ValidationResult,
    validate_medication_catalog_schema,
    validate_medication_values,
    validate_syringe_catalog_schema,
    validate_syringe_values,
)

__all__ = [
    # Loaders
    "load_excel_to_polars",
    "load_csv_to_polars",
    "load_file_auto",
    "detect_file_type",
    # Validators
    "ValidationResult",
    "validate_syringe_catalog_schema",
    "validate_syringe_values",
    "validate_medication_catalog_schema",
    "validate_medication_values",
    # Normalizers
    "standardize_columns",
    "parse_concentration_unit",
    "parse_dose_unit",
    "normalize_syringe_catalog",
    "normalize_medication_catalog",
    "fuzzy_match_medication",
    "fuzzy_match_medication_partial",
    # Catalogs
    "ReferenceCatalogs",
    "load_syringe_catalog",
    "load_medication_catalog",
    "load_reference_catalogs",
]
