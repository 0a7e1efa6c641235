#!/usr/bin/env python
"""
Celery Worker Entry Point

This module serves as the entry point for Celery workers and beat, ensuring
proper Flask application context initialization.

Usage:
    celery -A celery_worker.celery worker -Q email,maintenance -l info
    celery -A celery_worker.celery beat -l info
"""

import os

from dotenv import load_dotenv
from flask import Flask

load_dotenv()

from accredia.config import get_config  # noqa: E402
from accredia.extensions import db, redis_manager  # noqa: E402
from accredia.models.base import register_base_model_events  # noqa: E402
from accredia.tasks.celery_app import celery_app, init_celery  # noqa: E402


def create_celery_flask_app():
    """Create a minimal Flask app for Celery workers with just extensions."""
    app = Flask(__name__)

    config_name = os.environ.get('FLASK_ENV', 'development')
    app.config.from_object(get_config(config_name))

    # Initialize only the extensions Celery tasks need
    db.init_app(app)
    redis_manager.init_app(app)
    register_base_model_events(db)

    return app


flask_app = create_celery_flask_app()

# Tasks are registered on the shared instance; bind it to the worker app
celery = init_celery(celery_app, flask_app)

if __name__ == '__main__':
    celery.start()
