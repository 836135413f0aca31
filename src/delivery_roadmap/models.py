"""Data models for Delivery Roadmap."""

from dataclasses import dataclass, field
from datetime import date
from typing import Any


@dataclass(frozen=True)
class Cycle:
    """A time-boxed delivery window."""

    id: str
    name: str
    start: date | None
    end: date | None
    delivery: date | None = None
    state: str = ""  # "active" | "closed" | "future"


@dataclass(frozen=True)
class CycleMetadata:
    """Display metadata derived from a cycle's date window."""

    start_month: str = ""
    end_month: str = ""
    days_in_cycle: int = 0
    days_from_start_of_cycle: int = 0
    current_day_percentage: int = 0


@dataclass(frozen=True)
class CycleRef:
    """The cycle a release item is linked to."""

    id: str
    name: str


@dataclass(frozen=True)
class Assignee:
    """Person a release item is assigned to.

    Older extracts carry ``accountId`` instead of ``id``; either one identifies
    the person.
    """

    id: str | None = None
    account_id: str | None = None
    display_name: str = ""

    def identifiers(self) -> set[str]:
        return {key for key in (self.id, self.account_id) if key}


@dataclass(frozen=True)
class ProgressMetrics:
    """Effort-weighted progress counters and the percentages derived from them."""

    weeks: float = 0
    weeks_done: float = 0
    weeks_in_progress: float = 0
    weeks_todo: float = 0
    weeks_cancelled: float = 0
    weeks_postponed: float = 0
    weeks_not_to_do: float = 0
    release_items_count: int = 0
    release_items_done_count: int = 0
    progress: int = 0
    progress_with_in_progress: int = 0
    progress_by_item_count: int = 0
    percentage_not_to_do: int = 0


@dataclass
class ReleaseItem:
    """The smallest tracked unit of work."""

    id: str
    ticket_id: str = ""
    name: str = ""
    area: str = ""
    area_ids: tuple[str, ...] | None = None
    stage: str = ""
    status: str = ""
    effort: float | str | None = None  # as received; see progress.parse_effort
    assignee: Assignee | None = None
    cycle_id: str | None = None
    cycle: CycleRef | None = None
    validations: list[Any] = field(default_factory=list)
    url: str = ""
    roadmap_item_id: str | None = None


@dataclass
class RoadmapItem:
    """A planned deliverable under an initiative."""

    id: str
    name: str
    area: str = ""
    theme: str = ""
    team: str = ""
    url: str = ""
    owner: str = "Unassigned"
    labels: list[str] = field(default_factory=list)
    start_date: date | None = None
    end_date: date | None = None
    validations: list[Any] = field(default_factory=list)
    release_items: list[ReleaseItem] = field(default_factory=list)
    metrics: ProgressMetrics = field(default_factory=ProgressMetrics)


@dataclass
class Initiative:
    """Top-level grouping of roadmap items."""

    id: str
    name: str
    roadmap_items: list[RoadmapItem] = field(default_factory=list)
    metrics: ProgressMetrics = field(default_factory=ProgressMetrics)


@dataclass
class NestedCycleData:
    """Initiatives → roadmap items → release items, annotated with progress."""

    initiatives: list[Initiative] = field(default_factory=list)
    cycles: list[Cycle] = field(default_factory=list)


@dataclass(frozen=True)
class FilterCriteria:
    """Filter selection consumed by the cascading filter.

    ``None``, an empty tuple, or a tuple containing ``"all"`` leaves a list
    criterion unconstrained; ``None``, ``""`` or ``"all"`` does the same for
    ``area`` and ``cycle``.
    """

    area: str | None = None
    initiatives: tuple[str, ...] | None = None
    stages: tuple[str, ...] | None = None
    assignees: tuple[str, ...] | None = None
    cycle: str | None = None
    show_validation_errors: bool = False


@dataclass
class FilterResult:
    """Filtered data plus post-filter counts."""

    data: NestedCycleData
    applied_filters: FilterCriteria
    total_initiatives: int
    total_roadmap_items: int
    total_release_items: int


@dataclass
class CycleOverview:
    """The selected cycle, its progress over the filtered data, and that data."""

    cycle: Cycle
    metadata: CycleMetadata
    metrics: ProgressMetrics
    initiatives: list[Initiative]


@dataclass
class RoadmapView:
    """Cycles ordered for the roadmap timeline plus the filtered initiatives."""

    ordered_cycles: list[Cycle]
    active_cycle: Cycle | None
    initiatives: list[Initiative]
