# backend/cobros/__init__.py
from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import Flask

from .config import Config
from .extensions import db, live_queries


def create_app(test_config: Mapping[str, Any] | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    logging.getLogger(__name__).setLevel(app.config["LOG_LEVEL"])

    # Foreign keys must be on before the first connection is opened
    from . import database  # noqa: F401

    # Initialize extensions
    db.init_app(app)
    live_queries.init_app(app)

    # Import models so metadata is complete before create_all
    from . import models  # noqa: F401

    with app.app_context():
        db.create_all()

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
