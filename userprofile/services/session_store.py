"""
Internal service API for the session store.

Used to create, load, and delete user sessions. Session data are kept in
redis, keyed by session ID, and expire on their own after
``SESSION_DURATION`` seconds. The client gets a signed cookie that names the
session; a cookie is only honored if its nonce and user ID match what is in
the store.
"""

import json
import random
import uuid
from datetime import datetime, timedelta
from functools import wraps
from typing import Optional

import dateutil.parser
import fakeredis
import jwt
import redis
from flask import current_app
from pytz import UTC
from werkzeug.local import LocalProxy

from userprofile import logging
from userprofile.context import get_application_config, \
    get_application_global
from userprofile.domain import UserAccount, UserSession
from .exceptions import SessionCreationFailed, SessionDeletionFailed, \
    SessionUnknown, InvalidToken

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = 'foosecret'


def _generate_nonce(length: int = 8) -> str:
    return ''.join([str(random.randint(0, 9)) for i in range(length)])


class SessionStore(object):
    """
    Manages a connection to Redis.

    In fact, the StrictRedis instance is thread safe and connections are
    attached at the time a command is executed. This class simply provides a
    container for configuration.
    """

    def __init__(self, host: str, port: int, db: int, secret: str,
                 duration: int = 86400, fake: bool = False) -> None:
        """Open the connection to Redis."""
        if fake:
            logger.debug('Using FakeRedis for sessions')
            self.r = fakeredis.FakeStrictRedis()
        else:
            logger.debug('New Redis connection at %s, port %s', host, port)
            self.r = redis.StrictRedis(host=host, port=port, db=db)
        self._secret = secret
        self._duration = duration

    def create(self, user: UserAccount, ip_address: Optional[str] = None,
               session_id: Optional[str] = None) -> UserSession:
        """
        Create a new session.

        Parameters
        ----------
        user : :class:`.UserAccount`
        ip_address : str
        session_id : str
            If not provided, a new UUID is used.

        Returns
        -------
        :class:`.UserSession`

        Raises
        ------
        :class:`.SessionCreationFailed`

        """
        if session_id is None:
            session_id = str(uuid.uuid4())
        start_time = datetime.now(tz=UTC)
        end_time = start_time + timedelta(seconds=self._duration)
        session = UserSession(
            session_id=session_id,
            user_id=str(user.user_id),
            username=user.username,
            start_time=start_time,
            end_time=end_time,
            nonce=_generate_nonce()
        )
        data = json.dumps({
            'user_id': session.user_id,
            'username': session.username,
            'start_time': start_time.isoformat(),
            'end_time': end_time.isoformat(),
            'ip_address': ip_address,
            'nonce': session.nonce
        })
        try:
            self.r.set(session_id, data, ex=self._duration)
        except redis.exceptions.ConnectionError as e:
            raise SessionCreationFailed(f'Connection failed: {e}') from e
        except Exception as e:
            raise SessionCreationFailed(f'Failed to create: {e}') from e
        logger.debug('Created session %s for user %s', session_id,
                     session.user_id)
        return session

    def generate_cookie(self, session: UserSession) -> str:
        """Generate a cookie from a :class:`.UserSession`."""
        return self._pack_cookie({
            'user_id': session.user_id,
            'session_id': session.session_id,
            'nonce': session.nonce,
            'expires': session.end_time.isoformat()
        })

    def load(self, cookie: str) -> UserSession:
        """
        Load a session using a session cookie.

        Raises
        ------
        :class:`.InvalidToken`
            If the cookie is malformed, expired, or does not match the
            session that it names.
        :class:`.SessionUnknown`
            If the session named by the cookie does not exist.

        """
        cookie_data = self._unpack_cookie(cookie)
        try:
            expires = dateutil.parser.parse(cookie_data['expires'])
            session_id = cookie_data['session_id']
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidToken('Token payload malformed') from e

        if expires <= datetime.now(tz=UTC):
            raise InvalidToken('Session has expired')

        session = self.load_by_id(session_id)
        if session.expired:
            raise InvalidToken('Session has expired')
        if cookie_data.get('nonce') != session.nonce \
                or cookie_data.get('user_id') != session.user_id:
            raise InvalidToken('Invalid token; likely a forgery')
        return session

    def load_by_id(self, session_id: str) -> UserSession:
        """Get session data by session ID."""
        raw = self.r.get(session_id)
        if not raw:
            logger.debug('No such session: %s', session_id)
            raise SessionUnknown(f'Failed to find session {session_id}')
        data = json.loads(raw)
        return UserSession(
            session_id=session_id,
            user_id=data['user_id'],
            username=data['username'],
            start_time=dateutil.parser.parse(data['start_time']),
            end_time=dateutil.parser.parse(data['end_time']),
            nonce=data['nonce']
        )

    def delete(self, cookie: str) -> None:
        """Delete the session named by a cookie."""
        cookie_data = self._unpack_cookie(cookie)
        if 'session_id' not in cookie_data:
            raise InvalidToken('Token payload malformed')
        self.delete_by_id(cookie_data['session_id'])

    def delete_by_id(self, session_id: str) -> None:
        """
        Delete a session in the key-value store by ID.

        Raises
        ------
        :class:`.SessionDeletionFailed`

        """
        try:
            self.r.delete(session_id)
        except redis.exceptions.ConnectionError as e:
            raise SessionDeletionFailed(f'Connection failed: {e}') from e
        except Exception as e:
            raise SessionDeletionFailed(f'Failed to delete: {e}') from e
        logger.debug('Deleted session %s', session_id)

    def _unpack_cookie(self, cookie: str) -> dict:
        try:
            data = dict(jwt.decode(cookie, self._secret,
                                   algorithms=['HS256']))
        except jwt.exceptions.InvalidTokenError as e:
            raise InvalidToken('Session cookie is malformed') from e
        return data

    def _pack_cookie(self, cookie_data: dict) -> str:
        return jwt.encode(cookie_data, self._secret, algorithm='HS256')


def init_app(app: Optional[LocalProxy] = None) -> None:
    """Set default configuration parameters for an application instance."""
    config = get_application_config(app)
    config.setdefault('REDIS_HOST', 'localhost')
    config.setdefault('REDIS_PORT', '6379')
    config.setdefault('REDIS_DATABASE', '0')
    config.setdefault('REDIS_FAKE', False)
    config.setdefault('JWT_SECRET', DEFAULT_JWT_SECRET)
    config.setdefault('SESSION_DURATION', '86400')
    if config['JWT_SECRET'] == DEFAULT_JWT_SECRET \
            and not config.get('TESTING'):
        logger.warning('JWT_SECRET is not set; using the development default')


def get_session_store(app: Optional[LocalProxy] = None) -> SessionStore:
    """Get a new connection to the session store."""
    config = get_application_config(app)
    host = config.get('REDIS_HOST', 'localhost')
    port = int(config.get('REDIS_PORT', '6379'))
    db = int(config.get('REDIS_DATABASE', '0'))
    secret = config['JWT_SECRET']
    duration = int(config.get('SESSION_DURATION', '86400'))
    fake = bool(config.get('REDIS_FAKE', False))
    return SessionStore(host, port, db, secret, duration, fake=fake)


def current_store() -> SessionStore:
    """
    Get/create the :class:`.SessionStore` for this context.

    FakeRedis keeps its data in the client, so when it is in use the store is
    kept on the application rather than per-request.
    """
    g = get_application_global()
    if not g:
        return get_session_store()
    config = get_application_config()
    if config.get('REDIS_FAKE'):
        store: SessionStore = current_app.extensions.get('session_store')
        if store is None:
            store = get_session_store()
            current_app.extensions['session_store'] = store
        return store
    if 'session_store' not in g:
        g.session_store = get_session_store()
    return g.session_store      # type: ignore


@wraps(SessionStore.create)
def create(user: UserAccount, ip_address: Optional[str] = None,
           session_id: Optional[str] = None) -> UserSession:
    """Create a new session."""
    return current_store().create(user, ip_address, session_id=session_id)


@wraps(SessionStore.generate_cookie)
def generate_cookie(session: UserSession) -> str:
    """Generate a cookie from a :class:`.UserSession`."""
    return current_store().generate_cookie(session)


@wraps(SessionStore.load)
def load(cookie: str) -> UserSession:
    """Load a session by cookie value."""
    return current_store().load(cookie)


@wraps(SessionStore.delete)
def delete(cookie: str) -> None:
    """Delete a session in the key-value store."""
    return current_store().delete(cookie)
