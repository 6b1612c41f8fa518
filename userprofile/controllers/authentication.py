"""
Controllers for logging in and out.

Logging in creates a session in the session store. The client gets a signed
cookie naming that session, which it must present on every request to the
``/api/profile`` routes. Logging out deletes the session.
"""

from typing import Any, Mapping, Optional, Tuple

from werkzeug.exceptions import InternalServerError
from wtforms import Form, StringField, PasswordField
from wtforms.validators import DataRequired

from userprofile import logging, status
from userprofile.services import accounts, session_store
from userprofile.services.exceptions import AuthenticationFailed, \
    SessionCreationFailed, SessionDeletionFailed, SessionUnknown, InvalidToken
from .util import formdata

logger = logging.getLogger(__name__)

ResponseData = Tuple[dict, int, dict]

INVALID_CREDENTIALS = {'error': 'Invalid credentials'}


class LoginForm(Form):
    """Log in form."""

    username = StringField('Username', validators=[DataRequired()])
    password = PasswordField('Password', validators=[DataRequired()])


def login(params: Optional[Mapping[str, Any]],
          ip: Optional[str] = None) -> ResponseData:
    """
    Authenticate a user and start a session.

    Parameters
    ----------
    params : dict-like
        Should include ``username`` and ``password``.
    ip : str
        Address of the client.

    Returns
    -------
    dict
        Response data. On success, ``cookies`` holds the session cookie as
        ``(value, expires)``, for the route to set.
    int
        HTTP status code.
    dict
        Extra headers for the response.

    """
    form = LoginForm(formdata(params))
    if not form.validate():
        logger.debug('Login form not valid')
        return INVALID_CREDENTIALS, status.HTTP_401_UNAUTHORIZED, {}

    try:
        user = accounts.authenticate(form.username.data, form.password.data)
    except AuthenticationFailed as e:
        logger.debug('Authentication failed for %s: %s',
                     form.username.data, e)
        return INVALID_CREDENTIALS, status.HTTP_401_UNAUTHORIZED, {}

    try:
        session = session_store.create(user, ip)
        cookie = session_store.generate_cookie(session)
    except SessionCreationFailed as e:
        logger.error('Could not create session: %s', e)
        raise InternalServerError('Error logging in') from e
    logger.debug('Created session %s for user %s', session.session_id,
                 user.user_id)
    data = {
        'message': 'Login successful',
        'user': {
            'username': user.username,
            'email': user.email,
            'name': user.name
        },
        'cookies': {'session_cookie': (cookie, session.end_time)}
    }
    return data, status.HTTP_200_OK, {}


def logout(session_cookie: Optional[str]) -> ResponseData:
    """
    End the session named by ``session_cookie``, and clear the cookie.

    A cookie whose session is already gone is still cleared.
    """
    if session_cookie:
        try:
            session_store.delete(session_cookie)
        except (SessionUnknown, InvalidToken) as e:
            logger.debug('No session to delete: %s', e)
        except SessionDeletionFailed as e:
            logger.error('Could not delete session: %s', e)
            return {'error': 'Error logging out'}, \
                status.HTTP_500_INTERNAL_SERVER_ERROR, {}
    data = {
        'message': 'Logged out successfully',
        'cookies': {'session_cookie': ('', 0)}
    }
    return data, status.HTTP_200_OK, {}
