"""Configuration management for Delivery Roadmap."""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import tomli_w

from delivery_roadmap.view_filters import (
    COMMON,
    CYCLE_OVERVIEW_VIEW,
    DEFAULT_FILTER_CATEGORIES,
    DEFAULT_VIEWS,
    VIEW_SPECIFIC,
    FilterCategory,
    FilterRegistry,
    ViewFilterManager,
)


@dataclass
class Config:
    """Configuration for the cycle data extract, views and filter registry."""

    extract_path: str | None = None
    views: list[str] = field(default_factory=lambda: list(DEFAULT_VIEWS))
    default_view: str = CYCLE_OVERVIEW_VIEW
    filter_categories: list[FilterCategory] = field(
        default_factory=lambda: list(DEFAULT_FILTER_CATEGORIES)
    )

    def validate(self) -> list[str]:
        """Validate configuration values. Returns list of error messages."""
        errors: list[str] = []

        if not self.views:
            errors.append("At least one view must be declared")
        elif self.default_view not in self.views:
            errors.append(f"Default view '{self.default_view}' is not a declared view")

        seen: set[str] = set()
        for category in self.filter_categories:
            if not category.key:
                errors.append("Filter key is required")
            elif category.key in seen:
                errors.append(f"Filter '{category.key}' is declared twice")
            seen.add(category.key)
            if category.scope not in (COMMON, VIEW_SPECIFIC):
                errors.append(
                    f"Filter '{category.key}' scope must be '{COMMON}' or '{VIEW_SPECIFIC}'"
                )

        return errors

    def build_filter_registry(self) -> FilterRegistry:
        """Build the filter registry.

        Raises:
            UnknownViewError: If a filter references a view that is not declared
        """
        return FilterRegistry(self.filter_categories, self.views)

    def build_view_filter_manager(self) -> ViewFilterManager:
        return ViewFilterManager(self.build_filter_registry(), default_view=self.default_view)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return Path.home() / ".delivery-roadmap"


def get_config_path() -> Path:
    """Get the configuration file path."""
    return get_config_dir() / "config.toml"


def config_exists() -> bool:
    """Check if configuration file exists."""
    return get_config_path().exists()


def _parse_filter_category(entry: dict) -> FilterCategory:
    return FilterCategory(
        key=str(entry.get("key", "")),
        scope=str(entry.get("scope", "")),
        views=tuple(entry.get("views", ())),
        description=str(entry.get("description", "")),
    )


def load_config() -> Config:
    """Load configuration from TOML file.

    Missing [views] or [[filters]] sections fall back to the built-in views
    and filter registry.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration not found at {config_path}. "
            "Create ~/.delivery-roadmap/config.toml to set up."
        )

    with open(config_path, "rb") as f:
        # TOMLDecodeError is a ValueError
        data = tomllib.load(f)

    data_section = data.get("data", {})
    views_section = data.get("views", {})
    filters_section = data.get("filters")

    config = Config(extract_path=data_section.get("extract_path"))
    if "declared" in views_section:
        config.views = [str(v) for v in views_section["declared"]]
    if "default" in views_section:
        config.default_view = str(views_section["default"])
    if filters_section is not None:
        config.filter_categories = [_parse_filter_category(entry) for entry in filters_section]

    errors = config.validate()
    if errors:
        raise ValueError(f"Invalid configuration: {'; '.join(errors)}")

    return config


def save_config(config: Config) -> None:
    """Save configuration to TOML file."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    config_path = get_config_path()

    data: dict = {
        "views": {
            "declared": list(config.views),
            "default": config.default_view,
        },
        "filters": [
            {
                "key": category.key,
                "scope": category.scope,
                "views": list(category.views),
                "description": category.description,
            }
            for category in config.filter_categories
        ],
    }

    if config.extract_path:
        data["data"] = {"extract_path": config.extract_path}

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)
