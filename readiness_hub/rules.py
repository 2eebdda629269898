from typing import Optional

from readiness_hub.records import FuelTier, PrescribedMission, ScheduledDirective

DOWNGRADE_BELOW = 40
CAUTION_BELOW = 65

RECOVERY_FTP_FRACTION = 0.55
FALLBACK_RECOVERY_TARGET = "ZONE 1 FLUSH (< 150W)"


def default_mission() -> PrescribedMission:
    return PrescribedMission(
        title="Rest / Easy Spin",
        power_target="ZONE 1 (< 150W) or full rest",
        fuel_tier=FuelTier.LOW,
        coach_notes="No directive scheduled for today. Optional 20-30min easy walk or spin, mobility, hydrate.",
        is_altered=False,
    )


def _recovery_target(ftp_w: Optional[float]) -> str:
    if ftp_w and ftp_w > 0:
        return f"ZONE 1 FLUSH (< {int(round(RECOVERY_FTP_FRACTION * ftp_w))}W)"
    return FALLBACK_RECOVERY_TARGET


def _append(notes: str, extra: str) -> str:
    notes = (notes or "").strip()
    return f"{notes} {extra}" if notes else extra


def prescribe_mission(
    directive: Optional[ScheduledDirective],
    readiness: int,
    ftp_w: Optional[float] = None,
) -> PrescribedMission:
    """Adapt today's directive to the readiness score.

    < 40 downgrades to a recovery flush, 40-64 passes through with a caution,
    >= 65 passes through untouched. No directive yields the default rest day.
    """
    if directive is None:
        return default_mission()

    if readiness < DOWNGRADE_BELOW:
        note = (
            f"CRITICAL FATIGUE: readiness {readiness}/100. Scheduled '{directive.activity}' "
            f"({directive.power_target}) overridden. Flush the legs, hydrate, do not push."
        )
        return PrescribedMission(
            title=f"Recovery Protocol (was: {directive.activity})",
            power_target=_recovery_target(ftp_w),
            fuel_tier=FuelTier.LOW,
            coach_notes=_append(directive.coach_notes, note),
            is_altered=True,
        )

    if readiness < CAUTION_BELOW:
        note = (
            f"CAUTION: readiness {readiness}/100. Hold the low end of the target "
            "and cut the session short if HR drifts."
        )
        return PrescribedMission(
            title=directive.activity,
            power_target=directive.power_target,
            fuel_tier=directive.fuel_tier,
            coach_notes=_append(directive.coach_notes, note),
            is_altered=False,
        )

    return PrescribedMission(
        title=directive.activity,
        power_target=directive.power_target,
        fuel_tier=directive.fuel_tier,
        coach_notes=directive.coach_notes,
        is_altered=False,
    )
