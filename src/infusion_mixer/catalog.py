"""Default reference data: syringes and medication stocks.

These tables are plain immutable tuples. The planning core never reads
them implicitly; callers pass a catalog into each request, so synthetic
catalogs can be substituted freely (see ingest/ for loading from files).
"""

from infusion_mixer.models import Concentration, ConcentrationUnit, Medication, Syringe

DEFAULT_SYRINGES: tuple[Syringe, ...] = (
    Syringe(id="1cc-0-01", size_ml=1, increment_ml=0.01, label="1 cc (0.01 mL ticks)"),
    Syringe(id="3cc-0-1", size_ml=3, increment_ml=0.1, label="3 cc (0.1 mL ticks)"),
    Syringe(id="6cc-0-2", size_ml=6, increment_ml=0.2, label="6 cc (0.2 mL ticks)"),
    Syringe(id="12cc-0-2", size_ml=12, increment_ml=0.2, label="12 cc (0.2 mL ticks)"),
    Syringe(id="35cc-1", size_ml=35, increment_ml=1, label="35 cc (1 mL ticks)"),
    Syringe(id="60cc-1", size_ml=60, increment_ml=1, label="60 cc (1 mL ticks)"),
)

_MG = ConcentrationUnit.MG_PER_ML

DEFAULT_MEDICATIONS: tuple[Medication, ...] = (
    Medication("metoclopramide-5", "Metoclopramide", Concentration(5, _MG)),
    Medication("fentanyl-50", "Fentanyl", Concentration(0.05, _MG)),
    Medication("lidocaine-20", "Lidocaine", Concentration(20, _MG)),
    Medication("dextrose-500", "Dextrose", Concentration(500, _MG)),
    Medication("norepinephrine-1", "Norepinephrine", Concentration(1, _MG)),
    Medication("furosemide-50", "Furosemide", Concentration(50, _MG)),
    Medication("midazolam-5", "Midazolam", Concentration(5, _MG)),
    Medication("diazepam-5", "Diazepam", Concentration(5, _MG)),
)


def get_medication(medication_id: str) -> Medication:
    """Look up a default medication by id.

    Args:
        medication_id: Catalog slug, e.g. "lidocaine-20".

    Returns:
        The matching Medication.

    Raises:
        KeyError: If no default medication has that id.
    """
    for medication in DEFAULT_MEDICATIONS:
        if medication.id == medication_id:
            return medication
    raise KeyError(f"Unknown medication id: {medication_id}")


def get_syringe(syringe_id: str) -> Syringe:
    """Look up a default syringe by id.

    Raises:
        KeyError: If no default syringe has that id.
    """
    for syringe in DEFAULT_SYRINGES:
        if syringe.id == syringe_id:
            return syringe
    raise KeyError(f"Unknown syringe id: {syringe_id}")
