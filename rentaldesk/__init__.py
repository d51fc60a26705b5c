# rentaldesk/__init__.py
from __future__ import annotations

import logging
import os
from typing import Any, Optional

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from .clock import utcnow
from .errors import register_error_handlers
from .extensions import db, jwt, mail, migrate


# --- Config ------------------------------------------------------------------
def _get_allowed_origins(app: Flask) -> list[str]:
    """Allowed CORS origins from config; includes the local dev servers."""
    default = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    # Support comma-separated list in env
    extra = app.config.get("CORS_ALLOWED_ORIGINS") or ""
    extra_list = [o.strip() for o in extra.split(",") if o.strip()]
    return sorted(set(default + extra_list))


def _configure_logging(app: Flask) -> None:
    """JSON logs to stdout."""
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    app.logger.setLevel(level)
    root = logging.getLogger()
    root.setLevel(level)

    # avoid duplicate handlers in reloaders
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            fmt='{"ts":"%(asctime)s","level":"%(levelname)s","msg":"%(message)s","name":"%(name)s"}',
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)


def _configure_cors(app: Flask) -> None:
    CORS(
        app,
        resources={r"/api/*": {"origins": _get_allowed_origins(app)}},
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
        expose_headers=["Content-Type"],
        max_age=86400,
    )


def _configure_proxy(app: Flask) -> None:
    """Respect X-Forwarded-* from the load balancer."""
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore


def _init_extensions(app: Flask) -> None:
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)


def _register_blueprints(app: Flask) -> None:
    """Register all API blueprints under /api."""
    from .routes import contacts, contracts, dashboard, health, insurance, invoices, payments, properties

    prefix = app.config["API_PREFIX"]
    for module in (health, contacts, properties, contracts, invoices, payments, insurance, dashboard):
        app.register_blueprint(module.bp, url_prefix=prefix)
        app.logger.debug("Registered blueprint %s at %s", module.bp.name, prefix)


def _register_cli(app: Flask) -> None:
    from .cli import billing_cli, tenant_cli

    app.cli.add_command(billing_cli)
    app.cli.add_command(tenant_cli)


# --- Application Factory ------------------------------------------------------
def create_app(config_object: Optional[str | Any] = None) -> Flask:
    """
    Standard Flask application factory.

    `config_object` may be:
      - a config object or class
      - dotted path to a config class (e.g., "rentaldesk.config.ProductionConfig")
      - None (then CONFIG_CLASS env, defaulting to rentaldesk.config.DevelopmentConfig)
    """
    app = Flask(__name__, instance_relative_config=True)

    if config_object is None:
        config_object = os.getenv("CONFIG_CLASS", "rentaldesk.config.DevelopmentConfig")
    if isinstance(config_object, str):
        # load "package.ClassName"
        module, _, cls = config_object.rpartition(".")
        config_object = getattr(__import__(module, fromlist=[cls]), cls)
    if isinstance(config_object, type) and config_object.__init__ is not object.__init__:
        config_object = config_object()
    app.config.from_object(config_object)
    app.config.setdefault("API_PREFIX", "/api")

    # Core middleware/logging/CORS
    _configure_logging(app)
    _configure_proxy(app)
    _configure_cors(app)

    # Init extensions & blueprints
    _init_extensions(app)
    _register_blueprints(app)
    _register_cli(app)
    register_error_handlers(app)

    @app.get("/")
    def root():
        return jsonify({"service": "rentaldesk", "message": "See /api/health", "time": utcnow().isoformat()}), 200

    return app
