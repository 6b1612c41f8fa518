"""
Filesystem-backed storage for uploaded files.

Each kind of upload (profile photos, certificates) gets its own
:class:`BlobStore`, rooted at ``<UPLOAD_ROOT>/<kind>``. Blobs are referred to
by a generated filename (the "ref"), which is what gets stored on user
records and what appears in URLs under ``/uploads/<kind>/``.
"""

import os
import re
import secrets
import tempfile
import time
from typing import Optional

from werkzeug.local import LocalProxy

from userprofile import logging
from userprofile.context import get_application_config, \
    get_application_global
from .exceptions import StorageWriteError

logger = logging.getLogger(__name__)

_EXTENSION = re.compile(r'^\.[a-z0-9]{1,10}$')


def _clean_extension(extension_hint: Optional[str]) -> str:
    if not extension_hint:
        return ''
    extension = extension_hint.lower()
    if not extension.startswith('.'):
        extension = f'.{extension}'
    return extension if _EXTENSION.match(extension) else ''


def generate_ref(extension_hint: Optional[str] = None) -> str:
    """
    Generate a new blob reference.

    The reference is the creation time in milliseconds, plus some random
    hex so that concurrent writes in the same millisecond do not collide,
    plus the (sanitized) extension of the original file.
    """
    millis = int(time.time() * 1000)
    return f'{millis}-{secrets.token_hex(4)}{_clean_extension(extension_hint)}'


class BlobStore(object):
    """
    Stores blobs as files in a single directory.

    This class holds no open resources; it only knows where its directory is.
    """

    def __init__(self, root: str) -> None:
        """Use ``root`` as the blob directory, creating it if necessary."""
        self.root = root
        if not os.path.isdir(root):
            os.makedirs(root, exist_ok=True)
            logger.info('Created upload directory: %s', root)

    def path(self, ref: str) -> str:
        """
        Get the filesystem path for a blob.

        Raises
        ------
        ValueError
            If ``ref`` is not a bare filename.

        """
        if not ref or ref in ('.', '..') or os.path.basename(ref) != ref \
                or '/' in ref or '\\' in ref:
            raise ValueError(f'Not a valid blob reference: {ref!r}')
        return os.path.join(self.root, ref)

    def write(self, content: bytes,
              extension_hint: Optional[str] = None) -> str:
        """
        Store ``content`` under a newly generated reference.

        The content is written to a temporary file in the same directory and
        then renamed into place, so a partially-written blob is never visible
        under its reference.

        Parameters
        ----------
        content : bytes
        extension_hint : str
            Extension of the original file, e.g. ``'.png'``.

        Returns
        -------
        str
            The reference of the new blob.

        Raises
        ------
        :class:`.StorageWriteError`

        """
        ref = generate_ref(extension_hint)
        target = self.path(ref)
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix='.upload-')
            with os.fdopen(fd, 'wb') as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
        except OSError as e:
            logger.error('Could not write blob %s: %s', ref, e)
            if tmp_path is not None:
                self._discard(tmp_path)
            raise StorageWriteError(f'Could not write {ref}: {e}') from e
        logger.debug('Wrote blob %s (%i bytes)', ref, len(content))
        return ref

    def exists(self, ref: str) -> bool:
        """Determine whether a blob exists."""
        try:
            return os.path.isfile(self.path(ref))
        except ValueError:
            return False

    def size(self, ref: str) -> int:
        """Get the size of a blob in bytes."""
        return os.path.getsize(self.path(ref))

    def read(self, ref: str) -> bytes:
        """
        Get the content of a blob.

        Raises
        ------
        FileNotFoundError
            If there is no such blob.

        """
        with open(self.path(ref), 'rb') as f:
            return f.read()

    def delete(self, ref: str) -> None:
        """
        Delete a blob.

        Deleting a blob that does not exist is not an error.

        Raises
        ------
        OSError
            If the blob exists but could not be removed.

        """
        try:
            os.remove(self.path(ref))
        except FileNotFoundError:
            logger.debug('Blob %s already gone', ref)
            return
        logger.debug('Deleted blob %s', ref)

    def _discard(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error('Could not remove temporary file %s: %s', path, e)


def init_app(app: Optional[LocalProxy] = None) -> None:
    """
    Set configuration defaults, and make sure the upload directories exist.

    Parameters
    ----------
    app : :class:`flask.Flask`

    """
    config = get_application_config(app)
    config.setdefault('UPLOAD_ROOT', os.path.join(os.getcwd(), 'uploads'))
    config.setdefault('UPLOAD_KINDS', ('profiles', 'certificates'))
    for kind in config['UPLOAD_KINDS']:
        get_blob_store(kind, app)


def get_blob_store(kind: str, app: Optional[LocalProxy] = None) -> BlobStore:
    """Get a :class:`.BlobStore` for a kind of upload."""
    config = get_application_config(app)
    if kind not in config.get('UPLOAD_KINDS', ()):
        raise ValueError(f'Unknown kind of upload: {kind}')
    return BlobStore(os.path.join(config['UPLOAD_ROOT'], kind))


def current_store(kind: str) -> BlobStore:
    """Get/create the :class:`.BlobStore` for ``kind`` in this context."""
    g = get_application_global()
    if not g:
        return get_blob_store(kind)
    stores = g.setdefault('blob_stores', {})
    if kind not in stores:
        stores[kind] = get_blob_store(kind)
    return stores[kind]     # type: ignore

