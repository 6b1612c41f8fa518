"""
Logging for the profile service.

Use this in place of the standard library :func:`logging.getLogger`, so that
every module logs in the same structured (JSON) format:

.. code-block:: python

   from userprofile import logging

   logger = logging.getLogger(__name__)
   logger.debug('Some message: %s', foo)

The level is taken from the ``LOGLEVEL`` environment variable (an integer, as
in the standard library; default ``20``, i.e. INFO). If ``LOGFILE`` is set,
log records are written there as well as to stderr.
"""

import logging
import os
import sys
from typing import Optional

from pythonjsonlogger.json import JsonFormatter

FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'
RENAME_FIELDS = {'levelname': 'level', 'asctime': 'timestamp'}

# Re-exported so that callers need only import this module.
DEBUG = logging.DEBUG
INFO = logging.INFO
WARNING = logging.WARNING
ERROR = logging.ERROR


def _formatter() -> logging.Formatter:
    return JsonFormatter(FORMAT, rename_fields=RENAME_FIELDS)


def getLogger(name: str, stream: Optional[object] = None) -> logging.Logger:
    """
    Wrapper for :func:`logging.getLogger` that applies our configuration.

    Parameters
    ----------
    name : str
        The name of the logger; normally ``__name__`` of the calling module.
    stream : file-like
        Where to send log records. Defaults to ``sys.stderr``.

    Returns
    -------
    :class:`logging.Logger`

    """
    logger = logging.getLogger(name)
    if getattr(logger, '_userprofile_configured', False):
        return logger

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(_formatter())
    logger.addHandler(handler)

    logfile = os.environ.get('LOGFILE')
    if logfile:
        file_handler = logging.FileHandler(logfile)
        file_handler.setFormatter(_formatter())
        logger.addHandler(file_handler)

    logger.setLevel(int(os.environ.get('LOGLEVEL', INFO)))
    logger.propagate = False
    logger._userprofile_configured = True   # type: ignore
    return logger
