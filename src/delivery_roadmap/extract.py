"""Loading a cycle data extract from disk."""

import json
import logging
from pathlib import Path

from delivery_roadmap.exceptions import ExtractNotFoundError, InvalidExtractError

logger = logging.getLogger(__name__)


def load_extract(path: str | Path) -> dict:
    """Read a RawCycleData JSON extract.

    Only the top-level shape is checked; missing or malformed collections
    inside the extract are handled by the nesting transform.

    Raises:
        ExtractNotFoundError: If the file does not exist
        InvalidExtractError: If the file is not a JSON object
    """
    extract_path = Path(path).expanduser()
    if not extract_path.exists():
        raise ExtractNotFoundError(f"Cycle data extract not found at {extract_path}.")

    try:
        with open(extract_path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidExtractError(f"Cannot read cycle data extract: {e}") from e

    if not isinstance(data, dict):
        raise InvalidExtractError("Cycle data extract must be a JSON object.")

    # Some exporters wrap the payload as {"data": {...}}
    if "roadmapItems" not in data and isinstance(data.get("data"), dict):
        data = data["data"]

    roadmap_items = data.get("roadmapItems")
    logger.debug(
        "Loaded extract %s: %d roadmap items",
        extract_path,
        len(roadmap_items) if isinstance(roadmap_items, list) else 0,
    )
    return data
