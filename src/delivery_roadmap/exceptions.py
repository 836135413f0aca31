"""Exception hierarchy for Delivery Roadmap."""


class RoadmapError(Exception):
    """Base exception for roadmap errors."""

    pass


class ConfigNotFoundError(RoadmapError):
    """Configuration file not found."""

    pass


class InvalidConfigError(RoadmapError):
    """Configuration is invalid."""

    pass


class ConfigurationError(RoadmapError):
    """Filter registry and view registry disagree."""

    pass


class UnknownViewError(ConfigurationError):
    """A view name that is not declared in the view registry."""

    pass


class ValidationError(RoadmapError):
    """Filter key is not valid for the current view."""

    pass


class ExtractNotFoundError(RoadmapError):
    """Cycle data extract file not found."""

    pass


class InvalidExtractError(RoadmapError):
    """Cycle data extract cannot be parsed."""

    pass
