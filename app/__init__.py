"""Ezan settings Flask application factory."""

from flask import Flask


def create_app(store, manager=None, config=None):
    """
    Create and configure the Flask application.

    `store` is the ConfigStore the endpoints read and update; `manager` is the
    DailyScheduleManager used to report the armed schedule.
    """
    app = Flask(__name__)

    app.config["SETTINGS_STORE"] = store
    app.config["SCHEDULE_MANAGER"] = manager

    # Override with custom config if provided
    if config:
        app.config.update(config)

    # Register blueprints
    from app.routes import settings_bp
    app.register_blueprint(settings_bp)

    return app
