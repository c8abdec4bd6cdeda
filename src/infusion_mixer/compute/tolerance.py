"""Tolerance and fill-count reporting for computed plans.

Nothing here can fail a plan. Exceedances become INFO alerts so the caller
can decide how to present them.
"""

import logging
from collections.abc import Iterable

from infusion_mixer.models import (
    AlertKind,
    AlertSeverity,
    DrawInstruction,
    PlanAlert,
    ToleranceConfig,
)

logger = logging.getLogger(__name__)


def evaluate_tolerances(
    rel_concentration_error_pct: float,
    rel_total_volume_error_pct: float,
    tolerance: ToleranceConfig,
) -> list[PlanAlert]:
    """Flag relative errors above their configured tolerances.

    Args:
        rel_concentration_error_pct: Concentration error, in percent.
        rel_total_volume_error_pct: Total-volume error, in percent.
        tolerance: Tolerated percentages.

    Returns:
        Zero, one or two INFO alerts, concentration first.
    """
    alerts: list[PlanAlert] = []

    if rel_concentration_error_pct > tolerance.concentration_pct:
        alerts.append(
            PlanAlert(
                AlertSeverity.INFO,
                AlertKind.TOLERANCE_EXCEEDED,
                f"Concentration error {rel_concentration_error_pct:.2f}% "
                f"exceeds tolerance {tolerance.concentration_pct:.2f}%.",
            )
        )

    if rel_total_volume_error_pct > tolerance.total_volume_pct:
        alerts.append(
            PlanAlert(
                AlertSeverity.INFO,
                AlertKind.TOLERANCE_EXCEEDED,
                f"Total volume error {rel_total_volume_error_pct:.2f}% "
                f"exceeds tolerance {tolerance.total_volume_pct:.2f}%.",
            )
        )

    if alerts:
        logger.info(f"{len(alerts)} tolerance exceedance(s) reported")

    return alerts


def evaluate_fill_counts(
    draws: Iterable[DrawInstruction],
    max_fills: int,
) -> list[PlanAlert]:
    """Flag draws needing more fills than allowed.

    Args:
        draws: Draw instructions to check, in reporting order.
        max_fills: Fill cap per liquid.

    Returns:
        One INFO alert per offending draw.
    """
    alerts: list[PlanAlert] = []
    for draw in draws:
        fills = draw.fills
        if fills <= max_fills:
            continue
        liquid = draw.liquid[:1].upper() + draw.liquid[1:]
        alerts.append(
            PlanAlert(
                AlertSeverity.INFO,
                AlertKind.FILL_COUNT_EXCEEDED,
                f"{liquid} volume {draw.volume_ml:.2f} mL requires {fills} fills "
                f"of {draw.syringe.size_ml:g} mL syringe.",
            )
        )
    return alerts
