"""Flask configuration."""

import os
import secrets

from userprofile import domain

VERSION = '0.3.0'
"""The application version."""

#################### General config for app ####################
SECRET_KEY = os.environ.get('SECRET_KEY', secrets.token_urlsafe(16))
"""Sets the `Flask` secret key."""

SERVER_NAME = os.environ.get('PROFILE_SERVER_NAME')

APPLICATION_ROOT = os.environ.get('APPLICATION_ROOT', '/')

#################### Database ####################
SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI',
                                         'sqlite:///users.db')
"""Where user records live."""

SQLALCHEMY_TRACK_MODIFICATIONS = False

CREATE_DB = bool(int(os.environ.get('CREATE_DB', '1')))
"""Create missing tables when the application starts."""

#################### Uploads ####################
UPLOAD_ROOT = os.environ.get('UPLOAD_ROOT',
                             os.path.join(os.getcwd(), 'uploads'))
"""Uploaded files are stored in one directory per kind under this path.

Files are served back out of it at ``/uploads/<kind>/<filename>``.
"""

UPLOAD_KINDS = ('profiles', 'certificates')

DEFAULT_PROFILE_PHOTO = os.environ.get('DEFAULT_PROFILE_PHOTO',
                                       domain.DEFAULT_PROFILE_PHOTO)
"""Marks an account without a custom photo. Never a generated blob name."""

PROFILE_PHOTO_MAX_BYTES = int(os.environ.get('PROFILE_PHOTO_MAX_BYTES',
                                             5 * 1024 * 1024))
PROFILE_PHOTO_TYPES = os.environ.get('PROFILE_PHOTO_TYPES', 'image/*')
"""Comma-separated list of accepted content types for profile photos.

A trailing ``/*`` accepts any subtype.
"""

CERTIFICATE_MAX_BYTES = int(os.environ.get('CERTIFICATE_MAX_BYTES',
                                           10 * 1024 * 1024))

MAX_CONTENT_LENGTH = int(os.environ.get(
    'MAX_CONTENT_LENGTH',
    CERTIFICATE_MAX_BYTES + 1024 * 1024
))
"""Upper bound on a request body, enforced by werkzeug (413)."""

#################### Sessions ####################
REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')

REDIS_FAKE = bool(int(os.environ.get('REDIS_FAKE', '0')))
"""Use the FakeRedis library instead of a redis service.

Useful for testing, dev, beta."""

JWT_SECRET = os.environ.get('JWT_SECRET', 'foosecret')
"""Signs session cookies. Must be the same for every worker; set it in
production."""

SESSION_DURATION = os.environ.get('SESSION_DURATION', '86400')
"""Session lifetime in seconds."""

AUTH_SESSION_COOKIE_NAME = os.environ.get('AUTH_SESSION_COOKIE_NAME',
                                          'profile_session')
AUTH_SESSION_COOKIE_SECURE = bool(int(
    os.environ.get('AUTH_SESSION_COOKIE_SECURE', '0')
))
