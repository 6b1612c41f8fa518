"""Provides the JSON API of the profile service."""

import os
from datetime import datetime
from functools import wraps
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from flask import Blueprint, Response, current_app, g, jsonify, \
    make_response, request, send_from_directory
from werkzeug.exceptions import NotFound, Unauthorized

from userprofile import logging, status
from userprofile.controllers import authentication, profile, registration
from userprofile.services import database, session_store
from userprofile.services.exceptions import InvalidToken, SessionUnknown

logger = logging.getLogger(__name__)

blueprint = Blueprint('api', __name__)


def login_required(func: Callable) -> Callable:
    """
    Require a valid session cookie on the request.

    The session is put on :data:`flask.g` as ``session``, and the ID of its
    user as ``user_id``.

    Raises
    ------
    :class:`werkzeug.exceptions.Unauthorized`
        If there is no cookie, or it does not name a live session.

    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        cookie_name = current_app.config['AUTH_SESSION_COOKIE_NAME']
        cookie = request.cookies.get(cookie_name)
        if not cookie:
            logger.debug('No session cookie on request')
            raise Unauthorized('Not authenticated')
        try:
            session = session_store.load(cookie)
        except (InvalidToken, SessionUnknown) as e:
            logger.debug('Session cookie rejected: %s', e)
            raise Unauthorized('Not authenticated') from e
        g.session = session
        g.user_id = session.user_id
        return func(*args, **kwargs)
    return wrapper


def _params() -> Optional[Mapping[str, Any]]:
    """Get request data from a JSON body, or from form data."""
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else None
    return request.form


def _render(data: Dict[str, Any], status_code: int,
            headers: Dict[str, str]) -> Response:
    """Make a JSON response, setting any cookies requested by a controller."""
    cookies: Dict[str, Tuple[str, Any]] = data.pop('cookies', {})
    response: Response = make_response(jsonify(data), status_code, headers)
    for key, (value, expires) in cookies.items():
        _set_cookie(response, key, value, expires)
    return response


def _set_cookie(response: Response, key: str, value: str,
                expires: Optional[datetime] = None) -> None:
    if key == 'session_cookie':
        key = current_app.config['AUTH_SESSION_COOKIE_NAME']
    response.set_cookie(
        key, value, expires=expires, httponly=True, samesite='Lax',
        secure=current_app.config['AUTH_SESSION_COOKIE_SECURE']
    )


@blueprint.route('/status', methods=['GET'])
def service_status() -> tuple:
    """Health check endpoint."""
    if not database.is_available():
        return jsonify({'status': 'database unavailable'}), \
            status.HTTP_503_SERVICE_UNAVAILABLE
    data = {'status': 'OK', 'version': current_app.config['VERSION']}
    return jsonify(data), status.HTTP_200_OK


@blueprint.route('/register', methods=['POST'])
def register() -> Response:
    """Register a new user account."""
    return _render(*registration.register(_params()))


@blueprint.route('/login', methods=['POST'])
def login() -> Response:
    """Log in, setting a session cookie."""
    return _render(*authentication.login(_params(), request.remote_addr))


@blueprint.route('/logout', methods=['POST'])
@login_required
def logout() -> Response:
    """Log out, and clear the session cookie."""
    cookie_name = current_app.config['AUTH_SESSION_COOKIE_NAME']
    return _render(*authentication.logout(request.cookies.get(cookie_name)))


@blueprint.route('/api/profile', methods=['GET'])
@login_required
def read_profile() -> Response:
    """Get the profile of the logged-in user."""
    return _render(*profile.get_profile(g.user_id))


@blueprint.route('/api/profile', methods=['PUT'])
@login_required
def update_profile() -> Response:
    """Update the profile of the logged-in user."""
    return _render(*profile.update_profile(g.user_id, _params()))


@blueprint.route('/api/profile/social', methods=['PUT'])
@login_required
def update_social_links() -> Response:
    """Update the social links of the logged-in user."""
    return _render(*profile.update_social_links(g.user_id, _params()))


@blueprint.route('/api/profile/photo', methods=['POST'])
@login_required
def upload_photo() -> Response:
    """Replace the profile photo of the logged-in user."""
    return _render(*profile.upload_photo(g.user_id, request.files.get('photo')))


@blueprint.route('/api/profile/photo', methods=['DELETE'])
@login_required
def remove_photo() -> Response:
    """Reset the profile photo of the logged-in user to the default."""
    return _render(*profile.remove_photo(g.user_id))


@blueprint.route('/api/profile/certificates', methods=['POST'])
@login_required
def add_certificate() -> Response:
    """Add a certificate to the profile of the logged-in user."""
    data, status_code, headers = profile.add_certificate(
        g.user_id, _params(), request.files.get('certificateFile')
    )
    return _render(data, status_code, headers)


@blueprint.route('/uploads/<kind>/<filename>', methods=['GET'])
def uploaded_file(kind: str, filename: str) -> Response:
    """Serve a stored upload."""
    if kind not in current_app.config['UPLOAD_KINDS']:
        raise NotFound('No such file')
    directory = os.path.join(current_app.config['UPLOAD_ROOT'], kind)
    return send_from_directory(directory, filename)
