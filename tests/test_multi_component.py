"""Tests for three-component (active + secondary + filler) planning."""

import dataclasses

import pytest

from infusion_mixer.compute.multi_component import (
    BAND_EPSILON,
    compute_multi_component_plan,
    search_three_component,
    window_span,
)
from infusion_mixer.models import (
    AlertKind,
    AlertSeverity,
    Concentration,
    DoseUnit,
    InvalidRequestError,
    Medication,
    MultiComponentRequest,
    MultiComponentWeights,
    SecondaryAgentTarget,
    Syringe,
)


def _on_tick(volume: float, increment: float) -> bool:
    ticks = volume / increment
    return abs(ticks - round(ticks)) < 1e-6


class TestWindowSpan:
    """Tests for window_span."""

    @pytest.mark.parametrize(
        "center,cap,expected",
        [
            (14.4, 250, 3),
            (60, 250, 3),
            (61, 250, 4),
            (1000, 250, 50),
            (10000, 250, 250),
            (1000, 10, 10),
            (0, 250, 3),
        ],
    )
    def test_span(self, center: float, cap: int, expected: int) -> None:
        """Span is 5% of the center, at least 3 and at most the cap."""
        assert window_span(center, cap) == expected


class TestFeasibleMixture:
    """Tests for norepinephrine in 5% dextrose."""

    def test_feasible_with_three_draws(
        self, dextrose_request: MultiComponentRequest
    ) -> None:
        """A plan is found and lists active, secondary and filler draws."""
        plan = compute_multi_component_plan(dextrose_request)

        assert plan.feasible is True
        assert plan.feasible_at_desired_rate is True
        assert [draw.liquid for draw in plan.draws] == [
            "Norepinephrine",
            "Dextrose",
            "Sterile Water for Injection",
        ]
        assert [draw.syringe.id for draw in plan.draws] == [
            "3cc-0-1",
            "12cc-0-2",
            "60cc-1",
        ]

    def test_targets(self, dextrose_request: MultiComponentRequest) -> None:
        """Needed concentration and volume follow from the request."""
        plan = compute_multi_component_plan(dextrose_request)

        assert plan.needed_concentration_mg_per_ml == pytest.approx(0.012)
        assert plan.target_total_volume_ml == pytest.approx(120)
        assert plan.raw_active_volume_ml == pytest.approx(1.44)
        assert plan.raw_secondary_volume_ml == pytest.approx(12)
        assert plan.raw_filler_volume_ml == pytest.approx(106.56)

    def test_secondary_within_band(
        self, dextrose_request: MultiComponentRequest
    ) -> None:
        """Final dextrose concentration stays within 47.5-52.5 mg/mL."""
        plan = compute_multi_component_plan(dextrose_request)

        assert plan.secondary_final_concentration_mg_per_ml is not None
        assert (
            47.5 - BAND_EPSILON
            <= plan.secondary_final_concentration_mg_per_ml
            <= 52.5 + BAND_EPSILON
        )

    def test_conservation(self, dextrose_request: MultiComponentRequest) -> None:
        """Final volume and concentrations follow from the snapped volumes."""
        plan = compute_multi_component_plan(dextrose_request)

        assert plan.snapped_active_volume_ml is not None
        assert plan.snapped_secondary_volume_ml is not None
        assert plan.snapped_filler_volume_ml is not None
        assert plan.final_total_volume_ml is not None

        total = (
            plan.snapped_active_volume_ml
            + plan.snapped_secondary_volume_ml
            + plan.snapped_filler_volume_ml
        )
        assert plan.final_total_volume_ml == pytest.approx(total)
        assert plan.chosen_concentration_mg_per_ml == pytest.approx(
            1.0 * plan.snapped_active_volume_ml / total
        )
        assert plan.secondary_final_concentration_mg_per_ml == pytest.approx(
            500 * plan.snapped_secondary_volume_ml / total
        )

    def test_volumes_on_ticks(self, dextrose_request: MultiComponentRequest) -> None:
        """Every drawn volume is a whole number of its syringe's ticks."""
        plan = compute_multi_component_plan(dextrose_request)

        for draw in plan.draws:
            assert _on_tick(draw.volume_ml, draw.syringe.increment_ml)
            assert draw.fills <= dextrose_request.max_fills_per_component

    def test_dose_close_to_request(
        self, dextrose_request: MultiComponentRequest
    ) -> None:
        """The delivered dose at 5 mL/hr is close to 0.1 mcg/kg/min."""
        plan = compute_multi_component_plan(dextrose_request)

        assert plan.delivered_dose_at_desired_rate == pytest.approx(0.1, rel=0.05)
        assert plan.delivered_duration_hr == pytest.approx(
            plan.final_total_volume_ml / 5  # type: ignore[operator]
        )

    def test_deterministic(self, dextrose_request: MultiComponentRequest) -> None:
        """Identical requests give identical plans."""
        assert compute_multi_component_plan(
            dextrose_request
        ) == compute_multi_component_plan(dextrose_request)

    def test_custom_filler_name(self, dextrose_request: MultiComponentRequest) -> None:
        """The filler draw is labelled with the configured name."""
        request = dataclasses.replace(dextrose_request, filler_name="0.9% NaCl")
        plan = compute_multi_component_plan(request)
        assert plan.draws[-1].liquid == "0.9% NaCl"

    def test_zero_active_dose(self, dextrose_request: MultiComponentRequest) -> None:
        """A zero dose can still meet the dextrose band."""
        plan = compute_multi_component_plan(
            dataclasses.replace(dextrose_request, desired_dose=0)
        )

        assert plan.feasible is True
        assert plan.chosen_concentration_mg_per_ml is not None
        assert plan.chosen_concentration_mg_per_ml <= 1e-3


class TestInfeasibleMixture:
    """Tests for a mixture no tick combination can satisfy."""

    @pytest.fixture
    def infeasible_request(
        self, norepinephrine: Medication, syringes: tuple[Syringe, ...]
    ) -> MultiComponentRequest:
        """Weak active stock leaves no room for a 50 +/- 1 mg/mL secondary."""
        return MultiComponentRequest(
            weight_kg=20,
            active=norepinephrine,
            secondary=SecondaryAgentTarget(
                agent=Medication("agent-100", "Agent", Concentration(100)),
                target_concentration_mg_per_ml=50,
                tolerance_mg_per_ml=1,
            ),
            desired_dose=1,
            dose_unit=DoseUnit.MG_PER_KG_HR,
            desired_rate_ml_per_hr=5,
            desired_duration_hr=2,
            syringes=syringes,
        )

    def test_no_draws(self, infeasible_request: MultiComponentRequest) -> None:
        """No rounding of a rejected combination is offered."""
        plan = compute_multi_component_plan(infeasible_request)

        assert plan.feasible is False
        assert plan.draws == ()
        assert plan.snapped_active_volume_ml is None
        assert plan.final_total_volume_ml is None
        assert plan.delivered_duration_hr is None

    def test_alerts(self, infeasible_request: MultiComponentRequest) -> None:
        """Weak stock is reported, then the missing combination."""
        plan = compute_multi_component_plan(infeasible_request)

        assert [a.kind for a in plan.alerts] == [
            AlertKind.STOCK_TOO_WEAK,
            AlertKind.NO_FEASIBLE_COMBINATION,
        ]
        assert plan.alerts[1].severity == AlertSeverity.WARN
        assert plan.warnings[1] == (
            "Could not find volumes that meet the dose and Agent constraints "
            "with syringe increments."
        )

    def test_raw_volumes_still_reported(
        self, infeasible_request: MultiComponentRequest
    ) -> None:
        """Targets and raw volumes are returned for display."""
        plan = compute_multi_component_plan(infeasible_request)

        assert plan.target_concentration_mg_per_ml == 1.0
        assert plan.target_total_volume_ml == pytest.approx(10)
        assert plan.raw_active_volume_ml == pytest.approx(10)
        assert plan.raw_secondary_volume_ml == pytest.approx(5)
        assert plan.raw_filler_volume_ml == 0


class TestSearchThreeComponent:
    """Tests for search_three_component directly."""

    def test_band_respected_with_coarse_filler(self) -> None:
        """Candidates outside the band are never returned."""
        fine = Syringe(id="fine", size_ml=12, increment_ml=0.1)
        coarse = Syringe(id="coarse", size_ml=60, increment_ml=5)

        best = search_three_component(
            active_mg_per_ml=1.0,
            secondary_mg_per_ml=500,
            target_active_concentration=0.05,
            secondary_min=49,
            secondary_max=51,
            secondary_target=50,
            target_volume_ml=100,
            raw_active_ml=5,
            raw_secondary_ml=10,
            active_syringe=fine,
            secondary_syringe=fine,
            filler_syringe=coarse,
            weights=MultiComponentWeights(),
            max_span_steps=250,
        )

        assert best is not None
        assert 49 - BAND_EPSILON <= best.secondary_concentration <= 51 + BAND_EPSILON
        assert _on_tick(best.filler_volume_ml, 5)

    def test_impossible_band(self) -> None:
        """None is returned when even zero filler leaves the band unreachable."""
        best = search_three_component(
            active_mg_per_ml=1.0,
            secondary_mg_per_ml=100,
            target_active_concentration=1.0,
            secondary_min=49,
            secondary_max=51,
            secondary_target=50,
            target_volume_ml=10,
            raw_active_ml=10,
            raw_secondary_ml=5,
            active_syringe=Syringe(id="12cc", size_ml=12, increment_ml=0.2),
            secondary_syringe=Syringe(id="6cc", size_ml=6, increment_ml=0.2),
            filler_syringe=Syringe(id="1cc", size_ml=1, increment_ml=0.01),
            weights=MultiComponentWeights(),
            max_span_steps=250,
        )

        assert best is None

    def test_ties_go_to_earliest_combination(self) -> None:
        """Exact ties keep the first combination evaluated.

        With only the volume error weighted, every combination totalling
        10 mL scores zero. Active ticks start at 0 and secondary ticks at 2,
        and the filler tried first is the one nearest the target volume.
        """
        syringe = Syringe(id="60cc-1", size_ml=60, increment_ml=1)

        best = search_three_component(
            active_mg_per_ml=1.0,
            secondary_mg_per_ml=100,
            target_active_concentration=0.2,
            secondary_min=1,
            secondary_max=99,
            secondary_target=50,
            target_volume_ml=10,
            raw_active_ml=2,
            raw_secondary_ml=5,
            active_syringe=syringe,
            secondary_syringe=syringe,
            filler_syringe=syringe,
            weights=MultiComponentWeights(active=0, secondary=0, volume=1),
            max_span_steps=250,
        )

        assert best is not None
        assert best.score == 0
        assert best.active_volume_ml == 0
        assert best.secondary_volume_ml == 2
        assert best.filler_volume_ml == 8


class TestMultiComponentAlerts:
    """Tests for fill-count and tolerance alerts on feasible plans."""

    def test_fill_count_exceeded(
        self, dextrose_request: MultiComponentRequest
    ) -> None:
        """Over 100 mL of filler in a 60 cc syringe breaks a one-fill cap."""
        request = dataclasses.replace(dextrose_request, max_fills_per_component=1)

        plan = compute_multi_component_plan(request)

        assert plan.feasible is True
        fill_alerts = [
            a for a in plan.alerts if a.kind == AlertKind.FILL_COUNT_EXCEEDED
        ]
        assert fill_alerts
        assert all(a.severity == AlertSeverity.INFO for a in fill_alerts)
        assert any(
            a.message.startswith("Sterile Water for Injection volume")
            and "2 fills of 60 mL syringe" in a.message
            for a in fill_alerts
        )

    def test_default_cap_has_no_fill_alert(
        self, dextrose_request: MultiComponentRequest
    ) -> None:
        """The default cap of 20 fills is never reached here."""
        plan = compute_multi_component_plan(dextrose_request)

        assert AlertKind.FILL_COUNT_EXCEEDED not in [a.kind for a in plan.alerts]

    def test_coarse_catalog_exceeds_tolerance(
        self, dextrose_request: MultiComponentRequest
    ) -> None:
        """5 mL ticks cannot measure 1.44 mL of active drug closely."""
        request = dataclasses.replace(
            dextrose_request,
            syringes=(Syringe(id="35cc-5", size_ml=35, increment_ml=5),),
        )

        plan = compute_multi_component_plan(request)

        assert plan.feasible is True
        assert plan.rel_concentration_error_pct is not None
        assert plan.rel_concentration_error_pct > 1
        tolerance_alerts = [
            a for a in plan.alerts if a.kind == AlertKind.TOLERANCE_EXCEEDED
        ]
        assert tolerance_alerts
        assert tolerance_alerts[0].severity == AlertSeverity.INFO
        assert tolerance_alerts[0].message.startswith("Concentration error")


class TestInvalidMultiComponentRequests:
    """Tests for hard precondition failures."""

    def test_tolerance_not_below_target(
        self, dextrose_request: MultiComponentRequest, dextrose: Medication
    ) -> None:
        """A band reaching zero concentration is rejected."""
        request = dataclasses.replace(
            dextrose_request, secondary=SecondaryAgentTarget(dextrose, 50, 50)
        )
        with pytest.raises(InvalidRequestError, match="tolerance"):
            compute_multi_component_plan(request)

    def test_target_above_stock(
        self, dextrose_request: MultiComponentRequest, dextrose: Medication
    ) -> None:
        """Dilution cannot raise the secondary concentration above stock."""
        request = dataclasses.replace(
            dextrose_request, secondary=SecondaryAgentTarget(dextrose, 600, 10)
        )
        with pytest.raises(InvalidRequestError, match="exceeds"):
            compute_multi_component_plan(request)

    def test_weights_must_sum_to_one(
        self, dextrose_request: MultiComponentRequest
    ) -> None:
        """Objective weights are validated."""
        request = dataclasses.replace(
            dextrose_request, weights=MultiComponentWeights(0.5, 0.5, 0.5)
        )
        with pytest.raises(InvalidRequestError, match="weights"):
            compute_multi_component_plan(request)

    @pytest.mark.parametrize(
        "changes,field_name",
        [
            ({"weight_kg": 0}, "weight_kg"),
            ({"desired_rate_ml_per_hr": 0}, "desired_rate_ml_per_hr"),
            ({"syringes": ()}, "syringes"),
            ({"max_fills_per_component": 0}, "max_fills_per_component"),
            ({"max_span_steps": -1}, "max_span_steps"),
        ],
    )
    def test_rejected(
        self,
        dextrose_request: MultiComponentRequest,
        changes: dict[str, object],
        field_name: str,
    ) -> None:
        """Meaningless inputs raise InvalidRequestError naming the field."""
        request = dataclasses.replace(dextrose_request, **changes)  # type: ignore[arg-type]
        with pytest.raises(InvalidRequestError, match=field_name):
            compute_multi_component_plan(request)
