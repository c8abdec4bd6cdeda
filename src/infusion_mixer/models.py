"""Data models for Infusion Mixer."""

import math
from dataclasses import dataclass, field
from enum import Enum


class MixerError(Exception):
    """Base class for errors raised by Infusion Mixer."""


class InvalidRequestError(MixerError, ValueError):
    """Raised when a request cannot produce a meaningful plan."""


class InvalidSyringeError(MixerError, ValueError):
    """Raised when a syringe definition breaks its size/increment invariant."""


class UnknownUnitError(MixerError, ValueError):
    """Raised when a unit string does not name a supported unit."""


class CatalogLoadError(MixerError, ValueError):
    """Raised when a reference catalog file cannot be parsed."""


class ConcentrationUnit(str, Enum):
    """Units a stock concentration can be labelled in."""

    MG_PER_ML = "mg/mL"
    MCG_PER_ML = "mcg/mL"


class DoseUnit(str, Enum):
    """Weight-based dose-rate units accepted for infusion requests."""

    MG_PER_KG_HR = "mg/kg/hr"
    MG_PER_KG_MIN = "mg/kg/min"
    MG_PER_KG_DAY = "mg/kg/day"
    MCG_PER_KG_HR = "mcg/kg/hr"
    MCG_PER_KG_MIN = "mcg/kg/min"


class AlertSeverity(str, Enum):
    """How prominently a plan alert should be shown."""

    WARN = "warn"
    INFO = "info"


class AlertKind(str, Enum):
    """Condition that produced a plan alert."""

    STOCK_TOO_WEAK = "stock_too_weak"
    FALLBACK_ROUNDING = "fallback_rounding"
    TOLERANCE_EXCEEDED = "tolerance_exceeded"
    FILL_COUNT_EXCEEDED = "fill_count_exceeded"
    NO_FEASIBLE_COMBINATION = "no_feasible_combination"
    DOSE_OUTSIDE_RANGE = "dose_outside_range"


@dataclass(frozen=True)
class Concentration:
    """Labelled strength of a stock solution.

    Attributes:
        value: Numeric amount per millilitre.
        units: Mass unit the value is expressed in.
    """

    value: float
    units: ConcentrationUnit = ConcentrationUnit.MG_PER_ML


@dataclass(frozen=True)
class DoseRange:
    """Typical continuous-infusion dose bounds, in mg/kg/hr."""

    min_mg_per_kg_hr: float
    max_mg_per_kg_hr: float

    def contains(self, dose_mg_per_kg_hr: float) -> bool:
        """Check whether a canonical dose lies within the range (inclusive)."""
        return self.min_mg_per_kg_hr <= dose_mg_per_kg_hr <= self.max_mg_per_kg_hr


@dataclass(frozen=True)
class Medication:
    """Reference entry for a drug stock.

    Attributes:
        id: Stable slug used to reference the medication.
        name: Display name.
        concentration: Labelled stock concentration.
        notes: Free-text notes from the catalog.
        cri_dose_range: Typical constant-rate-infusion dose range, if known.
    """

    id: str
    name: str
    concentration: Concentration
    notes: str | None = None
    cri_dose_range: DoseRange | None = None


@dataclass(frozen=True)
class Syringe:
    """Measuring instrument with discrete volume markings.

    Attributes:
        id: Stable slug used to reference the syringe.
        size_ml: Capacity of one fill.
        increment_ml: Smallest marked step ("tick").
        label: Optional display label.
    """

    id: str
    size_ml: float
    increment_ml: float
    label: str | None = None

    def __post_init__(self) -> None:
        if not self.increment_ml > 0:
            raise InvalidSyringeError(
                f"Syringe {self.id}: increment must be > 0, got {self.increment_ml}"
            )
        if self.size_ml < self.increment_ml:
            raise InvalidSyringeError(
                f"Syringe {self.id}: size {self.size_ml} mL is smaller than "
                f"increment {self.increment_ml} mL"
            )

    @property
    def display_label(self) -> str:
        """Label to show operators, falling back to the nominal size."""
        if self.label:
            return self.label
        return f"{self.size_ml:g} cc"

    def fills_for(self, volume_ml: float) -> int:
        """Number of draws needed to measure a volume with this syringe."""
        return math.ceil(volume_ml / self.size_ml)


@dataclass(frozen=True)
class ToleranceConfig:
    """Acceptable relative errors, in percent."""

    concentration_pct: float = 1.0
    total_volume_pct: float = 5.0


@dataclass(frozen=True)
class SearchConfig:
    """Knobs bounding the tick-snap search.

    Attributes:
        max_fills_per_liquid: Most draws allowed for any one liquid.
        span_steps: Half-width of the stock tick window.
        conc_weight: Weight of the relative concentration error.
        volume_weight: Weight of the relative total-volume error.
    """

    max_fills_per_liquid: int = 20
    span_steps: int = 400
    conc_weight: float = 0.8
    volume_weight: float = 0.2


@dataclass(frozen=True)
class MixtureRequest:
    """Inputs for a two-liquid (stock + diluent) mixing plan.

    Attributes:
        weight_kg: Patient weight.
        medication: Drug stock to dilute.
        desired_dose: Dose value expressed in dose_unit.
        dose_unit: Unit of desired_dose.
        desired_rate_ml_per_hr: Pump rate that should deliver desired_dose.
        desired_duration_hr: How long the prepared volume should last.
        syringes: Available measuring instruments.
        planning_rate_ml_per_hr: Rate used to size the volume, if different.
        tolerance: Informational error tolerances.
        search: Search bounds and weights.
    """

    weight_kg: float
    medication: Medication
    desired_dose: float
    dose_unit: DoseUnit
    desired_rate_ml_per_hr: float
    desired_duration_hr: float
    syringes: tuple[Syringe, ...]
    planning_rate_ml_per_hr: float | None = None
    tolerance: ToleranceConfig = field(default_factory=ToleranceConfig)
    search: SearchConfig = field(default_factory=SearchConfig)

    def __post_init__(self) -> None:
        object.__setattr__(self, "syringes", tuple(self.syringes))


@dataclass(frozen=True)
class DrawInstruction:
    """How to measure one liquid.

    Attributes:
        liquid: Which liquid this draw is for (e.g. "stock", "diluent").
        syringe: Instrument used for the draw.
        volume_ml: Total volume to draw.
    """

    liquid: str
    syringe: Syringe
    volume_ml: float

    @property
    def fills(self) -> int:
        """Number of fills of the syringe needed for volume_ml."""
        return self.syringe.fills_for(self.volume_ml)

    def to_display_dict(self) -> dict[str, object]:
        """Convert to a plain dictionary for consumers."""
        return {
            "liquid": self.liquid,
            "syringe_id": self.syringe.id,
            "syringe_label": self.syringe.display_label,
            "syringe_size_ml": self.syringe.size_ml,
            "increment_ml": self.syringe.increment_ml,
            "volume_ml": self.volume_ml,
            "fills": self.fills,
        }


@dataclass(frozen=True)
class PlanAlert:
    """Non-fatal message attached to a plan."""

    severity: AlertSeverity
    kind: AlertKind
    message: str


@dataclass(frozen=True)
class MixturePlan:
    """Realizable stock + diluent mixing plan.

    Concentrations are mg/mL, volumes mL, rates mL/hr. The delivered dose
    is expressed in dose_unit.
    """

    feasible_at_desired_rate: bool
    alerts: tuple[PlanAlert, ...]

    needed_concentration_mg_per_ml: float
    target_concentration_mg_per_ml: float
    chosen_concentration_mg_per_ml: float
    stock_concentration_mg_per_ml: float

    desired_rate_ml_per_hr: float
    mapping_rate_ml_per_hr: float
    delivered_dose_at_desired_rate: float
    dose_unit: DoseUnit

    target_total_volume_ml: float
    final_total_volume_ml: float
    raw_stock_volume_ml: float
    raw_diluent_volume_ml: float
    snapped_stock_volume_ml: float
    snapped_diluent_volume_ml: float

    stock_draw: DrawInstruction
    diluent_draw: DrawInstruction

    rel_concentration_error_pct: float
    rel_total_volume_error_pct: float
    used_fallback_rounding: bool = False

    @property
    def warnings(self) -> list[str]:
        """Alert messages in the order they were raised."""
        return [alert.message for alert in self.alerts]

    @property
    def draws(self) -> tuple[DrawInstruction, ...]:
        """Draw instructions in preparation order."""
        return (self.stock_draw, self.diluent_draw)

    @property
    def delivered_duration_hr(self) -> float:
        """How long the final volume lasts at the desired rate."""
        return self.final_total_volume_ml / self.desired_rate_ml_per_hr

    def to_display_dict(self) -> dict[str, object]:
        """Convert to a plain dictionary for consumers.

        Returns:
            Dictionary of primitive values, no formatting applied.
        """
        return {
            "feasible_at_desired_rate": self.feasible_at_desired_rate,
            "warnings": self.warnings,
            "needed_concentration_mg_per_ml": self.needed_concentration_mg_per_ml,
            "chosen_concentration_mg_per_ml": self.chosen_concentration_mg_per_ml,
            "stock_concentration_mg_per_ml": self.stock_concentration_mg_per_ml,
            "desired_rate_ml_per_hr": self.desired_rate_ml_per_hr,
            "mapping_rate_ml_per_hr": self.mapping_rate_ml_per_hr,
            "delivered_dose_at_desired_rate": self.delivered_dose_at_desired_rate,
            "dose_unit": self.dose_unit.value,
            "target_total_volume_ml": self.target_total_volume_ml,
            "final_total_volume_ml": self.final_total_volume_ml,
            "stock_draw": self.stock_draw.to_display_dict(),
            "diluent_draw": self.diluent_draw.to_display_dict(),
            "rel_concentration_error_pct": self.rel_concentration_error_pct,
            "rel_total_volume_error_pct": self.rel_total_volume_error_pct,
        }


@dataclass(frozen=True)
class StockOnlyPlan:
    """Plan for running undiluted stock at the rate that matches the dose."""

    alerts: tuple[PlanAlert, ...]
    stock_concentration_mg_per_ml: float
    rate_ml_per_hr: float
    target_volume_ml: float
    draw: DrawInstruction
    delivered_dose_mg_per_kg_hr: float
    delivered_dose: float
    dose_unit: DoseUnit

    @property
    def warnings(self) -> list[str]:
        """Alert messages in the order they were raised."""
        return [alert.message for alert in self.alerts]


@dataclass(frozen=True)
class SecondaryAgentTarget:
    """Secondary agent whose final concentration must stay inside a band.

    Attributes:
        agent: Stock of the secondary agent (e.g. 50% dextrose).
        target_concentration_mg_per_ml: Desired final concentration.
        tolerance_mg_per_ml: Allowed deviation either side of the target.
    """

    agent: Medication
    target_concentration_mg_per_ml: float
    tolerance_mg_per_ml: float

    @property
    def min_concentration_mg_per_ml(self) -> float:
        return self.target_concentration_mg_per_ml - self.tolerance_mg_per_ml

    @property
    def max_concentration_mg_per_ml(self) -> float:
        return self.target_concentration_mg_per_ml + self.tolerance_mg_per_ml


@dataclass(frozen=True)
class MultiComponentWeights:
    """Weights of the three relative errors in the multi-component score."""

    active: float = 0.6
    secondary: float = 0.3
    volume: float = 0.1


@dataclass(frozen=True)
class MultiComponentRequest:
    """Inputs for an active drug + secondary agent + filler mixture."""

    weight_kg: float
    active: Medication
    secondary: SecondaryAgentTarget
    desired_dose: float
    dose_unit: DoseUnit
    desired_rate_ml_per_hr: float
    desired_duration_hr: float
    syringes: tuple[Syringe, ...]
    filler_name: str = "Sterile Water for Injection"
    planning_rate_ml_per_hr: float | None = None
    tolerance: ToleranceConfig = field(default_factory=ToleranceConfig)
    weights: MultiComponentWeights = field(default_factory=MultiComponentWeights)
    max_fills_per_component: int = 20
    max_span_steps: int = 250

    def __post_init__(self) -> None:
        object.__setattr__(self, "syringes", tuple(self.syringes))


@dataclass(frozen=True)
class MultiComponentPlan:
    """Result of the three-component search.

    When no combination satisfies the secondary-agent band, feasible is
    False, draws is empty and every snapped/final field is None.
    """

    feasible: bool
    feasible_at_desired_rate: bool
    alerts: tuple[PlanAlert, ...]

    needed_concentration_mg_per_ml: float
    target_concentration_mg_per_ml: float
    active_stock_concentration_mg_per_ml: float
    secondary_stock_concentration_mg_per_ml: float
    secondary_target_concentration_mg_per_ml: float
    secondary_min_concentration_mg_per_ml: float
    secondary_max_concentration_mg_per_ml: float

    desired_rate_ml_per_hr: float
    dose_unit: DoseUnit
    target_total_volume_ml: float
    raw_active_volume_ml: float
    raw_secondary_volume_ml: float
    raw_filler_volume_ml: float

    draws: tuple[DrawInstruction, ...] = ()
    snapped_active_volume_ml: float | None = None
    snapped_secondary_volume_ml: float | None = None
    snapped_filler_volume_ml: float | None = None
    final_total_volume_ml: float | None = None
    chosen_concentration_mg_per_ml: float | None = None
    secondary_final_concentration_mg_per_ml: float | None = None
    mapping_rate_ml_per_hr: float | None = None
    delivered_dose_at_desired_rate: float | None = None
    rel_concentration_error_pct: float | None = None
    rel_secondary_error_pct: float | None = None
    rel_total_volume_error_pct: float | None = None

    @property
    def warnings(self) -> list[str]:
        """Alert messages in the order they were raised."""
        return [alert.message for alert in self.alerts]

    @property
    def delivered_duration_hr(self) -> float | None:
        """How long the final volume lasts at the desired rate."""
        if self.final_total_volume_ml is None:
            return None
        return self.final_total_volume_ml / self.desired_rate_ml_per_hr
