"""Infusion Mixer.

Turns a weight-based continuous-infusion dose request into stock and
diluent volumes that can actually be drawn with the available syringes.
"""

from infusion_mixer.compute.multi_component import compute_multi_component_plan
from infusion_mixer.compute.planner import compute_mixture_plan, compute_stock_only_plan
from infusion_mixer.config import Settings
from infusion_mixer.models import (
    Concentration,
    ConcentrationUnit,
    DoseUnit,
    Medication,
    MixturePlan,
    MixtureRequest,
    MultiComponentPlan,
    MultiComponentRequest,
    SecondaryAgentTarget,
    Syringe,
)

__version__ = "0.1.0"
__all__ = [
    "Settings",
    "compute_mixture_plan",
    "compute_stock_only_plan",
    "compute_multi_component_plan",
    "Concentration",
    "ConcentrationUnit",
    "DoseUnit",
    "Medication",
    "Syringe",
    "MixtureRequest",
    "MixturePlan",
    "MultiComponentRequest",
    "MultiComponentPlan",
    "SecondaryAgentTarget",
]
