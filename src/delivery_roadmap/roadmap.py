"""Cycle overview and roadmap view assembly."""

from datetime import date
from typing import Mapping

from delivery_roadmap.config import Config, config_exists, load_config
from delivery_roadmap.exceptions import ConfigNotFoundError, InvalidConfigError
from delivery_roadmap.extract import load_extract
from delivery_roadmap.filters import apply_filters
from delivery_roadmap.models import (
    Cycle,
    CycleMetadata,
    CycleOverview,
    FilterCriteria,
    FilterResult,
    Initiative,
    NestedCycleData,
    ProgressMetrics,
    ReleaseItem,
    RoadmapItem,
    RoadmapView,
)
from delivery_roadmap.nesting import build_nested_cycle_data
from delivery_roadmap.progress import calculate_cycle_metadata, compute_release_item_progress

CLOSED_STATES = ("closed", "completed")


def load_cycle_data(config: Config | None = None) -> NestedCycleData:
    """Load the configured cycle data extract and nest it.

    Args:
        config: Configuration to use; read from ~/.delivery-roadmap when None

    Returns:
        NestedCycleData built from the extract

    Raises:
        ConfigNotFoundError: If config file not found
        InvalidConfigError: If config is invalid or names no extract
        ExtractNotFoundError: If the extract file does not exist
        InvalidExtractError: If the extract is not a JSON object
    """
    if config is None:
        if not config_exists():
            raise ConfigNotFoundError(
                "Configuration not found. Create ~/.delivery-roadmap/config.toml to set up."
            )
        try:
            config = load_config()
        except ValueError as e:
            raise InvalidConfigError(f"Invalid configuration: {e}")

    if not config.extract_path:
        raise InvalidConfigError(
            "Cycle data extract not configured. Add [data] extract_path to "
            "~/.delivery-roadmap/config.toml."
        )

    return build_nested_cycle_data(load_extract(config.extract_path))


def process_cycle_data(raw: Mapping | None, criteria: FilterCriteria | None = None) -> FilterResult:
    """Nest a raw extract, compute its progress, and filter it."""
    return apply_filters(build_nested_cycle_data(raw), criteria)


def _cycle_sort_key(cycle: Cycle) -> date:
    return cycle.start or cycle.delivery or date.min


def select_default_cycle(cycles: list[Cycle], today: date | None = None) -> Cycle | None:
    """Pick the cycle to show when the user has not chosen one.

    Priority: oldest active cycle, then oldest future cycle, then oldest
    closed cycle, then simply the oldest cycle.
    """
    if not cycles:
        return None
    today = today or date.today()
    ordered = sorted(cycles, key=_cycle_sort_key)

    for cycle in ordered:
        if cycle.state == "active":
            return cycle
    for cycle in ordered:
        starts = cycle.start or cycle.delivery
        if starts and starts > today and cycle.state not in CLOSED_STATES:
            return cycle
    for cycle in ordered:
        if cycle.state in CLOSED_STATES:
            return cycle
    return ordered[0]


def calculate_cycle_progress(
    cycle: Cycle, initiatives: list[Initiative], today: date | None = None
) -> tuple[CycleMetadata, ProgressMetrics]:
    """Cycle date metadata plus progress over every release item shown."""
    release_items = [
        ri
        for initiative in initiatives
        for roadmap_item in initiative.roadmap_items
        for ri in roadmap_item.release_items
    ]
    return calculate_cycle_metadata(cycle, today), compute_release_item_progress(release_items)


def _overview_cycle(
    cycles: list[Cycle], criteria: FilterCriteria, today: date | None
) -> Cycle | None:
    if criteria.cycle:
        for cycle in cycles:
            if cycle.id == criteria.cycle:
                return cycle
    return select_default_cycle(cycles, today)


def generate_cycle_overview(
    data: NestedCycleData,
    criteria: FilterCriteria | None = None,
    today: date | None = None,
) -> CycleOverview | None:
    """Filtered initiatives for the cycle overview, with cycle-level progress.

    Returns None when the data has no cycles. The cycle shown is the one named
    by the cycle filter, otherwise the default cycle.
    """
    criteria = criteria or FilterCriteria()
    cycle = _overview_cycle(data.cycles, criteria, today)
    if cycle is None:
        return None

    initiatives = apply_filters(data, criteria).data.initiatives
    metadata, metrics = calculate_cycle_progress(cycle, initiatives, today)
    return CycleOverview(cycle=cycle, metadata=metadata, metrics=metrics, initiatives=initiatives)


def generate_roadmap_view(
    data: NestedCycleData,
    criteria: FilterCriteria | None = None,
    today: date | None = None,
) -> RoadmapView:
    """Cycles in timeline order plus the filtered initiatives."""
    return RoadmapView(
        ordered_cycles=sorted(data.cycles, key=_cycle_sort_key),
        active_cycle=select_default_cycle(data.cycles, today),
        initiatives=apply_filters(data, criteria).data.initiatives,
    )


def _date_str(d: date | None) -> str | None:
    return d.isoformat() if d else None


def _metrics_dict(m: ProgressMetrics) -> dict:
    return {
        "weeks": m.weeks,
        "weeksDone": m.weeks_done,
        "weeksInProgress": m.weeks_in_progress,
        "weeksTodo": m.weeks_todo,
        "weeksCancelled": m.weeks_cancelled,
        "weeksPostponed": m.weeks_postponed,
        "weeksNotToDo": m.weeks_not_to_do,
        "releaseItemsCount": m.release_items_count,
        "releaseItemsDoneCount": m.release_items_done_count,
        "progress": m.progress,
        "progressWithInProgress": m.progress_with_in_progress,
        "progressByItemCount": m.progress_by_item_count,
        "percentageNotToDo": m.percentage_not_to_do,
    }


def _metadata_dict(m: CycleMetadata) -> dict:
    return {
        "startMonth": m.start_month,
        "endMonth": m.end_month,
        "daysInCycle": m.days_in_cycle,
        "daysFromStartOfCycle": m.days_from_start_of_cycle,
        "currentDayPercentage": m.current_day_percentage,
    }


def _cycle_dict(c: Cycle) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "start": _date_str(c.start),
        "end": _date_str(c.end),
        "delivery": _date_str(c.delivery),
        "state": c.state,
    }


def _release_item_dict(ri: ReleaseItem) -> dict:
    assignee = None
    if ri.assignee is not None:
        assignee = {
            "id": ri.assignee.id,
            "accountId": ri.assignee.account_id,
            "displayName": ri.assignee.display_name,
        }
    return {
        "id": ri.id,
        "ticketId": ri.ticket_id,
        "name": ri.name,
        "area": ri.area,
        "areaIds": list(ri.area_ids) if ri.area_ids is not None else None,
        "stage": ri.stage,
        "status": ri.status,
        "effort": ri.effort,
        "assignee": assignee,
        "cycleId": ri.cycle_id,
        "cycle": {"id": ri.cycle.id, "name": ri.cycle.name} if ri.cycle else None,
        "validations": list(ri.validations),
        "url": ri.url,
        "roadmapItemId": ri.roadmap_item_id,
    }


def _roadmap_item_dict(item: RoadmapItem) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "area": item.area,
        "theme": item.theme,
        "team": item.team,
        "url": item.url,
        "owner": item.owner,
        "labels": list(item.labels),
        "startDate": _date_str(item.start_date),
        "endDate": _date_str(item.end_date),
        "validations": list(item.validations),
        "releaseItems": [_release_item_dict(ri) for ri in item.release_items],
        **_metrics_dict(item.metrics),
    }


def _initiative_dict(init: Initiative) -> dict:
    return {
        "id": init.id,
        "name": init.name,
        "roadmapItems": [_roadmap_item_dict(item) for item in init.roadmap_items],
        **_metrics_dict(init.metrics),
    }


def criteria_to_dict(criteria: FilterCriteria) -> dict:
    """Only the criteria that are set."""
    values = {
        "area": criteria.area,
        "initiatives": list(criteria.initiatives) if criteria.initiatives is not None else None,
        "stages": list(criteria.stages) if criteria.stages is not None else None,
        "assignees": list(criteria.assignees) if criteria.assignees is not None else None,
        "cycle": criteria.cycle,
        "showValidationErrors": criteria.show_validation_errors or None,
    }
    return {key: value for key, value in values.items() if value is not None}


def nested_data_to_dict(data: NestedCycleData) -> dict:
    """Convert NestedCycleData to a JSON-serializable dict."""
    return {
        "initiatives": [_initiative_dict(init) for init in data.initiatives],
        "cycles": [_cycle_dict(c) for c in data.cycles],
    }


def filter_result_to_dict(result: FilterResult) -> dict:
    return {
        "data": nested_data_to_dict(result.data),
        "appliedFilters": criteria_to_dict(result.applied_filters),
        "totalInitiatives": result.total_initiatives,
        "totalRoadmapItems": result.total_roadmap_items,
        "totalReleaseItems": result.total_release_items,
    }


def cycle_overview_to_dict(overview: CycleOverview | None) -> dict | None:
    if overview is None:
        return None
    return {
        "cycle": {
            **_cycle_dict(overview.cycle),
            **_metadata_dict(overview.metadata),
            **_metrics_dict(overview.metrics),
        },
        "initiatives": [_initiative_dict(init) for init in overview.initiatives],
    }


def roadmap_view_to_dict(view: RoadmapView) -> dict:
    return {
        "orderedCycles": [_cycle_dict(c) for c in view.ordered_cycles],
        "activeCycle": _cycle_dict(view.active_cycle) if view.active_cycle else None,
        "initiatives": [_initiative_dict(init) for init in view.initiatives],
    }
