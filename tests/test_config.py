"""Tests for configuration loading and saving."""

from unittest.mock import patch

import pytest

from delivery_roadmap.config import Config, config_exists, load_config, save_config
from delivery_roadmap.exceptions import UnknownViewError
from delivery_roadmap.view_filters import (
    COMMON,
    DEFAULT_FILTER_CATEGORIES,
    DEFAULT_VIEWS,
    VIEW_SPECIFIC,
    FilterCategory,
)


@pytest.fixture
def config_dir(tmp_path):
    with patch("delivery_roadmap.config.get_config_dir", return_value=tmp_path):
        yield tmp_path


class TestConfigValidate:
    """Tests for Config.validate."""

    def test_defaults_are_valid(self):
        assert Config().validate() == []

    def test_default_view_must_be_declared(self):
        errors = Config(views=["roadmap"], default_view="cycle-overview").validate()
        assert errors == ["Default view 'cycle-overview' is not a declared view"]

    def test_no_views(self):
        assert Config(views=[]).validate() == ["At least one view must be declared"]

    def test_duplicate_and_bad_scope(self):
        config = Config(filter_categories=[
            FilterCategory("area", COMMON, ("roadmap",)),
            FilterCategory("area", "global", ("roadmap",)),
        ])
        errors = config.validate()
        assert "Filter 'area' is declared twice" in errors
        assert any("scope" in e for e in errors)

    def test_registry_with_undeclared_view_fails(self):
        config = Config(filter_categories=[FilterCategory("stages", VIEW_SPECIFIC, ("timeline",))])
        with pytest.raises(UnknownViewError):
            config.build_view_filter_manager()


class TestLoadConfig:
    """Tests for load_config and save_config."""

    def test_missing_file(self, config_dir):
        assert not config_exists()
        with pytest.raises(FileNotFoundError):
            load_config()

    def test_minimal_file_uses_defaults(self, config_dir):
        (config_dir / "config.toml").write_text('[data]\nextract_path = "/tmp/extract.json"\n')

        config = load_config()
        assert config.extract_path == "/tmp/extract.json"
        assert config.views == list(DEFAULT_VIEWS)
        assert config.default_view == "cycle-overview"
        assert config.filter_categories == list(DEFAULT_FILTER_CATEGORIES)

    def test_custom_views_and_filters(self, config_dir):
        (config_dir / "config.toml").write_text(
            '[views]\n'
            'declared = ["board", "list"]\n'
            'default = "list"\n'
            '\n'
            '[[filters]]\n'
            'key = "cycle"\n'
            'scope = "view-specific"\n'
            'views = ["board"]\n'
        )

        config = load_config()
        assert config.extract_path is None
        assert config.views == ["board", "list"]
        assert config.default_view == "list"
        assert config.filter_categories == [FilterCategory("cycle", VIEW_SPECIFIC, ("board",))]

    def test_invalid_default_view(self, config_dir):
        (config_dir / "config.toml").write_text('[views]\ndefault = "kanban"\n')
        with pytest.raises(ValueError, match="kanban"):
            load_config()

    def test_malformed_toml(self, config_dir):
        (config_dir / "config.toml").write_text("[views\n")
        with pytest.raises(ValueError):
            load_config()

    def test_save_and_load(self, config_dir):
        config = Config(
            extract_path="~/extracts/cycle.json",
            views=["root", "roadmap"],
            default_view="roadmap",
            filter_categories=[FilterCategory("area", COMMON, ("roadmap",), "Filter by area")],
        )
        save_config(config)

        assert config_exists()
        assert load_config() == config

    def test_save_without_extract_path(self, config_dir):
        save_config(Config())
        assert "[data]" not in (config_dir / "config.toml").read_text()
        assert load_config().extract_path is None
