"""Effort-weighted progress metrics and cycle date-window metadata."""

import math
from dataclasses import fields
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

from delivery_roadmap.models import Cycle, CycleMetadata, ProgressMetrics, ReleaseItem

TODO = "todo"
IN_PROGRESS = "inprogress"
DONE = "done"
CANCELLED = "cancelled"
POSTPONED = "postponed"
REPLANNED = "replanned"

_STATUS_ALIASES = {
    "to do": TODO,
    "not started": TODO,
    "open": TODO,
    "in progress": IN_PROGRESS,
    "in-progress": IN_PROGRESS,
    "wip": IN_PROGRESS,
    "work in progress": IN_PROGRESS,
    "completed": DONE,
    "closed": DONE,
    "finished": DONE,
    "canceled": CANCELLED,
    "rescheduled": REPLANNED,
}

_MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

# Percentage fields are derived; everything else on ProgressMetrics is a counter.
_PERCENTAGE_FIELDS = {
    "progress",
    "progress_with_in_progress",
    "progress_by_item_count",
    "percentage_not_to_do",
}


def _round_half_up(value: float, places: int) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def normalize(value: float) -> float:
    """Round to one decimal place, halves away from zero."""
    return _round_half_up(value, 1)


def round_to_two_digits(value: float) -> float:
    """Round to two decimal places, halves away from zero."""
    return _round_half_up(value, 2)


def _percentage(part: float, whole: float) -> int:
    if whole <= 0:
        return 0
    return max(0, int(_round_half_up(part / whole * 100, 0)))


def normalize_status(status: object) -> str:
    """Map a raw tracker status onto one of the canonical status values.

    Matching is case-insensitive. A missing status counts as ``todo``; an
    unrecognised one is returned lower-cased and falls in no status bucket.
    """
    if not status or not isinstance(status, str):
        return TODO
    normalized = status.strip().lower()
    return _STATUS_ALIASES.get(normalized, normalized)


def parse_effort(value: object) -> float:
    """Coerce an effort estimate to weeks; anything non-numeric or negative is 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        effort = float(value)
    else:
        try:
            effort = float(Decimal(str(value).strip()))
        except (InvalidOperation, ValueError):
            return 0.0
    if not math.isfinite(effort) or effort < 0:
        return 0.0
    return effort


def _derive(
    weeks: float,
    weeks_done: float,
    weeks_in_progress: float,
    weeks_todo: float,
    weeks_cancelled: float,
    weeks_postponed: float,
    release_items_count: int,
    release_items_done_count: int,
) -> ProgressMetrics:
    weeks_not_to_do = round_to_two_digits(weeks_cancelled + weeks_postponed)
    return ProgressMetrics(
        weeks=weeks,
        weeks_done=weeks_done,
        weeks_in_progress=weeks_in_progress,
        weeks_todo=weeks_todo,
        weeks_cancelled=weeks_cancelled,
        weeks_postponed=weeks_postponed,
        weeks_not_to_do=weeks_not_to_do,
        release_items_count=release_items_count,
        release_items_done_count=release_items_done_count,
        progress=_percentage(weeks_done, weeks),
        progress_with_in_progress=_percentage(weeks_done + weeks_in_progress, weeks),
        progress_by_item_count=_percentage(release_items_done_count, release_items_count),
        percentage_not_to_do=_percentage(weeks_not_to_do, weeks),
    )


def compute_release_item_progress(items: Iterable[ReleaseItem]) -> ProgressMetrics:
    """Compute progress metrics over a collection of release items.

    Replanned items are skipped entirely: they add no weeks and are not
    counted. Items with a missing or non-numeric effort are counted but
    contribute zero weeks.
    """
    sums = {TODO: 0.0, IN_PROGRESS: 0.0, DONE: 0.0, CANCELLED: 0.0, POSTPONED: 0.0}
    weeks = 0.0
    count = 0
    done_count = 0

    for item in items:
        status = normalize_status(item.status)
        if status == REPLANNED:
            continue
        effort = parse_effort(item.effort)
        weeks += effort
        count += 1
        if status in sums:
            sums[status] += effort
        if status == DONE:
            done_count += 1

    return _derive(
        weeks=round_to_two_digits(weeks),
        weeks_done=round_to_two_digits(sums[DONE]),
        weeks_in_progress=round_to_two_digits(sums[IN_PROGRESS]),
        weeks_todo=round_to_two_digits(sums[TODO]),
        weeks_cancelled=round_to_two_digits(sums[CANCELLED]),
        weeks_postponed=round_to_two_digits(sums[POSTPONED]),
        release_items_count=count,
        release_items_done_count=done_count,
    )


def aggregate_progress_metrics(metrics_list: Iterable[ProgressMetrics]) -> ProgressMetrics:
    """Roll child metrics up into one.

    Raw counters are summed and every percentage is re-derived from the sums,
    so a large child outweighs a small one.
    """
    totals = {
        f.name: 0 for f in fields(ProgressMetrics) if f.name not in _PERCENTAGE_FIELDS
    }
    for metrics in metrics_list:
        for name in totals:
            totals[name] += getattr(metrics, name) or 0

    return _derive(
        weeks=normalize(totals["weeks"]),
        weeks_done=round_to_two_digits(totals["weeks_done"]),
        weeks_in_progress=round_to_two_digits(totals["weeks_in_progress"]),
        weeks_todo=round_to_two_digits(totals["weeks_todo"]),
        weeks_cancelled=round_to_two_digits(totals["weeks_cancelled"]),
        weeks_postponed=round_to_two_digits(totals["weeks_postponed"]),
        release_items_count=int(totals["release_items_count"]),
        release_items_done_count=int(totals["release_items_done_count"]),
    )


def calculate_cycle_metadata(cycle: Cycle | None, today: date | None = None) -> CycleMetadata:
    """Derive month labels and elapsed-day figures for a cycle.

    The cycle end falls back to its delivery date. A missing cycle or a missing
    start/end yields blank metadata rather than an error.
    """
    if cycle is None:
        return CycleMetadata()
    start = cycle.start
    end = cycle.end or cycle.delivery
    if start is None or end is None:
        return CycleMetadata()

    today = today or date.today()
    days_in_cycle = max(0, (end - start).days)
    days_from_start = min(max(0, (today - start).days), days_in_cycle)
    if days_in_cycle == 0:
        current_day_percentage = 0
    else:
        current_day_percentage = min(100, _percentage(days_from_start, days_in_cycle))

    return CycleMetadata(
        start_month=_MONTH_ABBREVIATIONS[start.month - 1],
        end_month=_MONTH_ABBREVIATIONS[end.month - 1],
        days_in_cycle=days_in_cycle,
        days_from_start_of_cycle=days_from_start,
        current_day_percentage=current_day_percentage,
    )
