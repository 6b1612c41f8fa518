"""Application factory for the profile service."""

from typing import Any, Dict, Optional

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge, \
    Unauthorized

from userprofile import logging, status
from userprofile.encode import ISO8601JSONProvider
from userprofile.routes import api
from userprofile.services import blobs, database, session_store

logger = logging.getLogger(__name__)


def create_web_app(config: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Initialize and configure the profile service application.

    Parameters
    ----------
    config : dict
        Configuration values that override those in :mod:`userprofile.config`.

    """
    app = Flask('userprofile')
    app.config.from_pyfile('config.py')
    if config:
        app.config.update(config)
    app.json = ISO8601JSONProvider(app)

    database.init_app(app)
    blobs.init_app(app)
    session_store.init_app(app)

    app.register_blueprint(api.blueprint)
    register_error_handlers(app)

    if app.config['CREATE_DB']:
        with app.app_context():
            database.create_all()
    logger.debug('Created application, version %s', app.config['VERSION'])
    return app


def register_error_handlers(app: Flask) -> None:
    """Render errors as JSON, in the same shape as controller errors."""
    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error: RequestEntityTooLarge) -> tuple:
        return jsonify({'error': 'File size too large'}), \
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE

    @app.errorhandler(Unauthorized)
    def handle_unauthorized(error: Unauthorized) -> tuple:
        return jsonify({'error': 'Not authenticated'}), \
            status.HTTP_401_UNAUTHORIZED

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException) -> tuple:
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_exception(error: Exception) -> tuple:
        logger.error('Unhandled error: %s', error, exc_info=error)
        return jsonify({'error': 'Something went wrong!'}), \
            status.HTTP_500_INTERNAL_SERVER_ERROR
