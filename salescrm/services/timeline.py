"""
Stage timeline and overdue evaluation.

Pure functions over stage history entries (anything with ``stage``,
``entered_at``, ``exited_at`` and ``duration_seconds`` attributes); the caller
passes ``now`` so results are deterministic.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence

from salescrm.services.reference_data import STAGE_EXPECTED_DAYS, is_terminal

SECONDS_PER_DAY = 86400
WARNING_FACTOR = 1.5


class DurationStatus(str, Enum):
    ON_TRACK = "on-track"
    WARNING = "warning"
    OVERDUE = "overdue"


def expected_duration(stage: str) -> Optional[dict]:
    """{min, max, display} in days, or None for an unknown stage."""
    if stage not in STAGE_EXPECTED_DAYS:
        return None
    min_days, max_days, display = STAGE_EXPECTED_DAYS[stage]
    return {"min": min_days, "max": max_days, "display": display}


def classify(stage: str, elapsed_days: float) -> DurationStatus:
    """
    on-track up to the stage's max, warning up to 1.5 * max, overdue beyond.
    Terminal stages and stages without an expected window are always on-track.
    """
    expected = STAGE_EXPECTED_DAYS.get(stage)
    if is_terminal(stage) or not expected or expected[1] == 0:
        return DurationStatus.ON_TRACK
    max_days = expected[1]
    if elapsed_days <= max_days:
        return DurationStatus.ON_TRACK
    if elapsed_days <= max_days * WARNING_FACTOR:
        return DurationStatus.WARNING
    return DurationStatus.OVERDUE


def whole_days(start: datetime, end: datetime) -> int:
    """Full days between two timestamps (truncated toward zero)."""
    return int((end - start).total_seconds() / SECONDS_PER_DAY)


def _whole_hours(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() / 3600)


def elapsed_days(entry, now: datetime) -> float:
    """A recorded positive duration wins over timestamps."""
    if entry.duration_seconds is not None and entry.duration_seconds > 0:
        return entry.duration_seconds / SECONDS_PER_DAY
    if entry.exited_at is not None:
        return whole_days(entry.entered_at, entry.exited_at)
    return whole_days(entry.entered_at, now)


def _days_hours(hours: int) -> str:
    days, rest = divmod(hours, 24)
    return f"{days}d {rest}h" if days > 0 else f"{rest}h"


def duration_label(entry, now: datetime) -> str:
    """'3d 4h' for closed entries, '5h (ongoing)' for the open one."""
    if entry.duration_seconds is not None and entry.duration_seconds > 0:
        return _days_hours(entry.duration_seconds // 3600)
    if entry.exited_at is not None:
        return _days_hours(_whole_hours(entry.entered_at, entry.exited_at))
    return f"{_days_hours(_whole_hours(entry.entered_at, now))} (ongoing)"


def _current_entry(stage: str, entries: Sequence) -> Optional[object]:
    for entry in entries:
        if entry.exited_at is None and entry.stage == stage:
            return entry
    return None


def current_stage_status(client, entries: Sequence, now: datetime) -> dict:
    """
    How long the client has sat in its current stage and how that compares
    with the expected window. Falls back to pipeline start / creation date when
    there is no open history entry.
    """
    entry = _current_entry(client.stage, entries)
    if entry is not None:
        entered_at = entry.entered_at
    else:
        entered_at = client.pipeline_start_date or client.created_at
    days = whole_days(entered_at, now) if entered_at else 0
    return {
        "stage": client.stage,
        "enteredAt": entered_at,
        "elapsedDays": days,
        "status": classify(client.stage, days).value,
        "expected": expected_duration(client.stage),
    }


def timeline(client, entries: Sequence, now: datetime) -> dict:
    ordered: List = sorted(entries, key=lambda e: e.entered_at)
    stages = []
    for entry in ordered:
        days = elapsed_days(entry, now)
        stages.append({
            "id": entry.id,
            "stage": entry.stage,
            "enteredAt": entry.entered_at,
            "exitedAt": entry.exited_at,
            "durationSeconds": entry.duration_seconds,
            "elapsedDays": days,
            "durationLabel": duration_label(entry, now),
            "isCurrent": entry.exited_at is None and entry.stage == client.stage,
            "status": classify(entry.stage, days).value,
            "expected": expected_duration(entry.stage),
        })

    if ordered:
        started_at = ordered[0].entered_at
    else:
        started_at = client.pipeline_start_date or client.created_at

    return {
        "clientId": client.id,
        "companyName": client.company_name,
        "stages": stages,
        "totalDurationDays": whole_days(started_at, now) if started_at else 0,
        "currentStage": client.stage,
        "currentStageStatus": current_stage_status(client, ordered, now),
    }
