"""HTTP route handlers for the Delivery Roadmap JSON API."""

import logging
from datetime import date, timedelta

from flask import Blueprint, current_app, jsonify, request, session

from delivery_roadmap.config import config_exists
from delivery_roadmap.exceptions import (
    ConfigNotFoundError,
    ExtractNotFoundError,
    InvalidConfigError,
    InvalidExtractError,
    RoadmapError,
    UnknownViewError,
)
from delivery_roadmap.filters import apply_filters
from delivery_roadmap.models import FilterCriteria, NestedCycleData
from delivery_roadmap.nesting import build_nested_cycle_data
from delivery_roadmap.roadmap import (
    criteria_to_dict,
    cycle_overview_to_dict,
    filter_result_to_dict,
    generate_cycle_overview,
    generate_roadmap_view,
    load_cycle_data,
    roadmap_view_to_dict,
)
from delivery_roadmap.view_filters import (
    CYCLE_OVERVIEW_VIEW,
    ROADMAP_VIEW,
    ViewFilterManager,
    ViewFilterState,
)

logger = logging.getLogger(__name__)

bp = Blueprint("main", __name__)

SESSION_KEY = "view_filters"


def _manager() -> ViewFilterManager:
    return current_app.config["VIEW_FILTER_MANAGER"]


def _load_state() -> ViewFilterState:
    stored = session.get(SESSION_KEY)
    if not stored:
        return _manager().initial_state()
    return ViewFilterState.from_dict(stored)


def _save_state(state: ViewFilterState) -> None:
    session[SESSION_KEY] = state.to_dict()


def _view_payload(view: str, data: NestedCycleData, criteria: FilterCriteria) -> dict:
    payload: dict = {"view": view, "filters": criteria_to_dict(criteria)}
    if view == CYCLE_OVERVIEW_VIEW:
        payload["cycleOverview"] = cycle_overview_to_dict(generate_cycle_overview(data, criteria))
    elif view == ROADMAP_VIEW:
        payload["roadmap"] = roadmap_view_to_dict(generate_roadmap_view(data, criteria))
    else:
        payload["result"] = filter_result_to_dict(apply_filters(data, criteria))
    return payload


def _switch_view(view: str):
    """Switch the session to ``view``; returns (state, error response)."""
    try:
        state = _manager().switch_view(_load_state(), view)
    except UnknownViewError as e:
        logger.warning("Unknown view requested: %s", view)
        return None, (jsonify({"error": str(e)}), 404)
    _save_state(state)
    return state, None


@bp.route("/health")
def health():
    """Health check endpoint."""
    extract_configured = bool(current_app.config["ROADMAP_CONFIG"].extract_path)
    if extract_configured:
        return jsonify({
            "status": "ok",
            "config_loaded": config_exists(),
            "extract_configured": True,
        })
    else:
        return jsonify({
            "status": "error",
            "config_loaded": config_exists(),
            "extract_configured": False,
            "message": "Cycle data extract not configured",
        }), 503


@bp.route("/api/views/<view>")
def api_view(view):
    """Switch to a view and return its filtered data."""
    state, error = _switch_view(view)
    if error:
        return error

    try:
        data = load_cycle_data(current_app.config["ROADMAP_CONFIG"])
    except (ConfigNotFoundError, InvalidConfigError) as e:
        return jsonify({"error": str(e)}), 503
    except (ExtractNotFoundError, InvalidExtractError) as e:
        logger.error("Cannot load cycle data extract: %s", e)
        return jsonify({"error": str(e)}), 503
    except RoadmapError as e:
        return jsonify({"error": str(e)}), 500

    criteria = _manager().get_active_filters(state)
    return jsonify(_view_payload(view, data, criteria))


@bp.route("/api/filters")
def api_get_filters():
    """Return the session's filter state and the active filters."""
    state = _load_state()
    return jsonify({
        "state": state.to_dict(),
        "filters": criteria_to_dict(_manager().get_active_filters(state)),
        "available": _manager().registry.keys_for_view(state.current_view),
    })


@bp.route("/api/filters", methods=["POST"])
def api_update_filter():
    """Update one filter for the session's current view."""
    body = request.get_json(silent=True) or {}
    key = str(body.get("key", "")).strip()
    if not key:
        return jsonify({"error": "Filter key is required."}), 400

    update = _manager().update_filter(_load_state(), key, body.get("value"))
    if not update.ok:
        logger.warning("Rejected filter update: %s", update.error)
        return jsonify({"error": str(update.error)}), 400

    _save_state(update.state)
    return jsonify({
        "state": update.state.to_dict(),
        "filters": criteria_to_dict(_manager().get_active_filters(update.state)),
    })


@bp.route("/api/filters", methods=["DELETE"])
def api_clear_filters():
    """Clear every filter selection, keeping the current view."""
    state = _manager().clear_filters(_load_state())
    _save_state(state)
    return jsonify({"state": state.to_dict(), "filters": {}})


@bp.route("/api/filters/<view>", methods=["DELETE"])
def api_reset_view_filters(view):
    """Drop one view's view-specific filters; common filters stay."""
    if not _manager().registry.has_view(view):
        return jsonify({"error": f"View '{view}' is not declared"}), 404

    state = _manager().reset_view_filters(_load_state(), view)
    _save_state(state)
    return jsonify({
        "state": state.to_dict(),
        "filters": criteria_to_dict(_manager().get_active_filters(state)),
    })


@bp.route("/demo/<view>")
def demo(view):
    """Serve a view over built-in demo data (no extract needed)."""
    state, error = _switch_view(view)
    if error:
        return error

    criteria = _manager().get_active_filters(state)
    return jsonify(_view_payload(view, build_nested_cycle_data(demo_extract()), criteria))


def demo_extract(today: date | None = None) -> dict:
    """A small RawCycleData extract with cycles around ``today``."""
    today = today or date.today()

    def d(offset_days):
        return (today + timedelta(days=offset_days)).isoformat()

    alice = {"id": "u-alice", "displayName": "Alice Moreau"}
    bob = {"accountId": "u-bob", "displayName": "Bob Okafor"}
    chen = {"id": "u-chen", "displayName": "Chen Wei"}

    return {
        "cycles": [
            {"id": "cycle-1", "name": "Cycle 1", "start": d(-90), "end": d(-45),
             "delivery": d(-50), "state": "closed"},
            {"id": "cycle-2", "name": "Cycle 2", "start": d(-30), "end": d(15),
             "delivery": d(10), "state": "active"},
            {"id": "cycle-3", "name": "Cycle 3", "start": d(30), "end": d(75),
             "delivery": d(70), "state": "future"},
        ],
        "initiatives": [
            {"id": "init-platform", "name": "Platform Modernisation"},
            {"id": "init-mobile", "name": "Mobile App Launch"},
        ],
        "areas": [
            {"id": "platform", "name": "Platform"},
            {"id": "mobile", "name": "Mobile"},
        ],
        "assignees": [alice, bob, chen],
        "stages": [
            {"id": "s1", "name": "Discovery"},
            {"id": "s2", "name": "Build"},
            {"id": "s3", "name": "Rollout"},
        ],
        "roadmapItems": [
            {
                "id": "RM-1", "summary": "API Gateway migration", "initiativeId": "init-platform",
                "area": {"id": "platform", "name": "Platform"}, "theme": "Reliability",
                "url": "#",
                "releaseItems": [
                    {"id": "RI-1", "ticketId": "PLAT-101", "status": "done", "effort": 3,
                     "stage": "s2", "area": "platform", "assignee": alice, "cycleId": "cycle-1"},
                    {"id": "RI-2", "ticketId": "PLAT-102", "status": "inprogress", "effort": "2.5",
                     "stage": "s3", "area": "platform", "assignee": bob, "cycleId": "cycle-2"},
                    {"id": "RI-3", "ticketId": "PLAT-103", "status": "replanned", "effort": 4,
                     "stage": "s2", "area": "platform", "assignee": alice, "cycleId": "cycle-2"},
                ],
            },
            {
                "id": "RM-2", "summary": "Observability uplift", "initiativeId": "init-platform",
                "area": "platform", "url": "#",
                "validations": [{"code": "missingEstimate", "status": "error"}],
                "releaseItems": [
                    {"id": "RI-4", "ticketId": "PLAT-201", "status": "todo", "effort": None,
                     "stage": "s1", "area": "platform", "assignee": chen, "cycleId": "cycle-2",
                     "validations": [{"code": "missingEstimate", "status": "error"}]},
                ],
            },
            {
                "id": "RM-3", "summary": "iOS MVP", "initiativeId": "init-mobile",
                "area": "mobile", "url": "#",
                "releaseItems": [
                    {"id": "RI-5", "ticketId": "MOB-1", "status": "done", "effort": 5,
                     "stage": "s3", "area": "mobile", "assignee": chen, "cycleId": "cycle-2"},
                    {"id": "RI-6", "ticketId": "MOB-2", "status": "cancelled", "effort": 1,
                     "stage": "s2", "area": "mobile", "assignee": bob, "cycleId": "cycle-2"},
                    {"id": "RI-7", "ticketId": "MOB-3", "status": "postponed", "effort": 2,
                     "stage": "s2", "area": "mobile", "assignee": bob, "cycleId": "cycle-3"},
                ],
            },
            {
                # No initiative id: lands under "Unassigned Initiative"
                "id": "RM-4", "summary": "Docs refresh", "area": "platform", "url": "#",
                "releaseItems": [
                    {"id": "RI-8", "ticketId": "DOC-1", "status": "in progress", "effort": 1,
                     "stage": "s2", "area": "platform", "assignee": alice, "cycleId": "cycle-2"},
                ],
            },
        ],
    }
