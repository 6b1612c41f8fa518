"""Helpers for getting at the current application and its globals."""

import os
from typing import Any, Optional, Union

from flask import g, current_app, has_app_context
from werkzeug.local import LocalProxy


def get_application_config(app: Optional[Union[LocalProxy, object]] = None) \
        -> Union[dict, os._Environ]:
    """
    Get a configuration from the current app, or fall back to env.

    Parameters
    ----------
    app : :class:`flask.Flask`

    Returns
    -------
    dict-like
        This is either the current Flask application configuration, or
        ``os.environ``. Either of these should support the ``get()`` method.

    """
    if app is not None:
        config = getattr(app, 'config', None)
        if config is not None:
            return config   # type: ignore
    if has_app_context():
        return current_app.config    # type: ignore
    return os.environ


def get_application_global() -> Optional[Any]:
    """
    Get the current application global proxy object.

    Returns
    -------
    proxy or None

    """
    if has_app_context():
        return g
    return None
