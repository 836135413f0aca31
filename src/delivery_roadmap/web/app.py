"""Flask application factory for the Delivery Roadmap JSON API."""

import logging

from flask import Flask

from delivery_roadmap.config import Config, config_exists, load_config

logger = logging.getLogger(__name__)


def create_app(config: Config | None = None) -> Flask:
    """Create and configure the Flask application.

    The filter registry is built here so that a registry naming an undeclared
    view stops the app from starting.
    """
    app = Flask(__name__)

    app.config["SECRET_KEY"] = "delivery-roadmap-local-dev"

    if config is None:
        config = load_config() if config_exists() else Config()
    app.config["ROADMAP_CONFIG"] = config
    app.config["VIEW_FILTER_MANAGER"] = config.build_view_filter_manager()
    logger.info("Views: %s (default %s)", ", ".join(config.views), config.default_view)

    from delivery_roadmap.web.routes import bp
    app.register_blueprint(bp)

    return app
