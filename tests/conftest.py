"""Shared pytest fixtures for Infusion Mixer tests."""

import os
from collections.abc import Generator
from unittest.mock import patch

import polars as pl
import pytest

from infusion_mixer.catalog import DEFAULT_SYRINGES, get_medication
from infusion_mixer.config import Settings
from infusion_mixer.models import (
    Concentration,
    ConcentrationUnit,
    DoseRange,
    DoseUnit,
    Medication,
    MixtureRequest,
    MultiComponentRequest,
    SecondaryAgentTarget,
    Syringe,
)


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Set up mock environment variables for testing.

    Yields:
        Dictionary of mock environment variables.
    """
    env_vars = {
        "LOG_LEVEL": "DEBUG",
        "CATALOG_DIR": "/tmp/test_catalogs",
        "MAX_FILLS_PER_LIQUID": "5",
        "SEARCH_SPAN_STEPS": "50",
        "CONCENTRATION_TOLERANCE_PCT": "0.5",
        "VOLUME_TOLERANCE_PCT": "2.5",
    }
    with patch.dict(os.environ, env_vars, clear=False):
        yield env_vars


@pytest.fixture
def test_settings(mock_env_vars: dict[str, str]) -> Settings:
    """Create test settings with mock values.

    Args:
        mock_env_vars: Mock environment variables fixture.

    Returns:
        Settings instance configured for testing.
    """
    return Settings.from_env()


@pytest.fixture
def syringes() -> tuple[Syringe, ...]:
    """Default syringe catalog (1, 3, 6, 12, 35 and 60 cc)."""
    return DEFAULT_SYRINGES


@pytest.fixture
def norepinephrine() -> Medication:
    """Norepinephrine 1 mg/mL stock."""
    return get_medication("norepinephrine-1")


@pytest.fixture
def dextrose() -> Medication:
    """Dextrose 50% (500 mg/mL) stock."""
    return get_medication("dextrose-500")


@pytest.fixture
def ranged_medication() -> Medication:
    """1 mg/mL stock with a typical CRI range of 0.05-0.5 mg/kg/hr."""
    return Medication(
        id="test-drug-1",
        name="Test Drug",
        concentration=Concentration(1, ConcentrationUnit.MG_PER_ML),
        cri_dose_range=DoseRange(0.05, 0.5),
    )


@pytest.fixture
def basic_request(
    norepinephrine: Medication, syringes: tuple[Syringe, ...]
) -> MixtureRequest:
    """10 kg patient, 0.1 mg/kg/hr at 5 mL/hr for 2 hours.

    Needed concentration is exactly 0.2 mg/mL: 2 mL stock + 8 mL diluent.
    """
    return MixtureRequest(
        weight_kg=10,
        medication=norepinephrine,
        desired_dose=0.1,
        dose_unit=DoseUnit.MG_PER_KG_HR,
        desired_rate_ml_per_hr=5,
        desired_duration_hr=2,
        syringes=syringes,
    )


@pytest.fixture
def weak_stock_request(
    norepinephrine: Medication, syringes: tuple[Syringe, ...]
) -> MixtureRequest:
    """20 kg patient, 1 mg/kg/hr at 2 mL/hr: needs 10 mg/mL from 1 mg/mL stock."""
    return MixtureRequest(
        weight_kg=20,
        medication=norepinephrine,
        desired_dose=1,
        dose_unit=DoseUnit.MG_PER_KG_HR,
        desired_rate_ml_per_hr=2,
        desired_duration_hr=2,
        syringes=syringes,
    )


@pytest.fixture
def dextrose_request(
    norepinephrine: Medication,
    dextrose: Medication,
    syringes: tuple[Syringe, ...],
) -> MultiComponentRequest:
    """Norepinephrine 0.1 mcg/kg/min in 5% dextrose for 24 hours at 5 mL/hr."""
    return MultiComponentRequest(
        weight_kg=10,
        active=norepinephrine,
        secondary=SecondaryAgentTarget(
            agent=dextrose,
            target_concentration_mg_per_ml=50,
            tolerance_mg_per_ml=2.5,
        ),
        desired_dose=0.1,
        dose_unit=DoseUnit.MCG_PER_KG_MIN,
        desired_rate_ml_per_hr=5,
        desired_duration_hr=24,
        syringes=syringes,
    )


@pytest.fixture
def sample_syringe_df() -> pl.DataFrame:
    """Syringe catalog as exported with display column names.

    Returns:
        Polars DataFrame with two syringes.
    """
    return pl.DataFrame(
        {
            "ID": ["3cc", "60cc"],
            "Size (mL)": [3.0, 60.0],
            "Increment (mL)": [0.1, 1.0],
            "Label": ["3 cc", "60 cc"],
        }
    )


@pytest.fixture
def sample_medication_df() -> pl.DataFrame:
    """Medication catalog with mixed concentration units.

    Returns:
        Polars DataFrame with three medications.
    """
    return pl.DataFrame(
        {
            "id": ["lido", "fent", "nor"],
            "name": ["Lidocaine", "Fentanyl", "Norepinephrine"],
            "concentration": [20.0, 50.0, 1.0],
            "units": ["mg/mL", "mcg/mL", "mg/ml"],
            "notes": ["2%", None, ""],
            "cri_min_mg_per_kg_hr": [1.5, None, None],
            "cri_max_mg_per_kg_hr": [3.0, None, None],
        }
    )
