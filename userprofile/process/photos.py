"""
Replace and remove user profile photos.

A profile photo lives in two places: the image itself is a blob in the
``profiles`` :class:`.BlobStore`, and the user's record holds the blob's
reference. Replacing a photo therefore means writing a new blob, pointing the
record at it, and reclaiming the old blob. :class:`ProfilePhotos` performs
those steps so that, from the caller's point of view, a replacement either
happens completely or not at all:

1. The upload is validated (type, size) before anything is written.
2. The new blob is written, and read back to make sure it is all there.
3. The user record is pointed at the new blob and saved, then re-read to make
   sure the change stuck.
4. Only then is the previous photo deleted.

If anything goes wrong before step 4, the new blob is deleted again and the
error is raised; the record still points at the previous photo, which is
untouched. The exception is a save that went through but cannot be re-read:
the record may then refer to the new blob, so it is kept, and the previous
photo is kept too. Failing to delete the previous photo in step 4 leaves
an orphaned file, which is logged but is not an error: the user already has
their new photo.

Steps 3 and 4 for a given user are serialized by a per-user lock, so that two
concurrent replacements cannot both claim the same previous photo, and one
cannot delete the photo that the other has just installed. The lock is
in-process only.
"""

import threading
from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterable, Optional

from userprofile import logging
from userprofile.context import get_application_config
from userprofile.domain import UploadedFile, DEFAULT_PROFILE_PHOTO
from userprofile.services import accounts, blobs
from userprofile.services.blobs import BlobStore
from userprofile.services.exceptions import ValidationError, UploadTooLarge, \
    StorageIntegrityError, ConsistencyError

logger = logging.getLogger(__name__)

MAX_BYTES = 5 * 1024 * 1024
ALLOWED_TYPES = ('image/*',)


class AccountLocks(object):
    """
    One lock per user account.

    A lock exists only while some thread holds or is waiting for it, so the
    number of locks is bounded by the number of concurrent callers rather than
    the number of accounts ever seen.
    """

    def __init__(self) -> None:
        """Start with no locks."""
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}

    def _acquire_entry(self, user_id: str) -> threading.Lock:
        with self._guard:
            if user_id not in self._locks:
                self._locks[user_id] = threading.Lock()
                self._users[user_id] = 0
            self._users[user_id] += 1
            return self._locks[user_id]

    def _release_entry(self, user_id: str) -> None:
        with self._guard:
            self._users[user_id] -= 1
            if self._users[user_id] == 0:
                del self._users[user_id]
                del self._locks[user_id]

    def __len__(self) -> int:
        """Number of accounts that currently have a lock."""
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, user_id: str) -> Generator[None, None, None]:
        """Hold the lock for ``user_id`` for the duration of the block."""
        user_id = str(user_id)
        lock = self._acquire_entry(user_id)
        try:
            with lock:
                yield
        finally:
            self._release_entry(user_id)


LOCKS = AccountLocks()
"""Shared by every :class:`.ProfilePhotos` in this process, by default."""


def type_allowed(content_type: Optional[str],
                 allowed: Iterable[str]) -> bool:
    """
    Check a declared content type against a list of accepted types.

    An accepted type ending in ``/*`` matches any subtype, e.g. ``image/*``
    matches ``image/png``. Parameters (``; charset=...``) are ignored.
    """
    if not content_type:
        return False
    mimetype = content_type.split(';', 1)[0].strip().lower()
    for pattern in allowed:
        pattern = pattern.strip().lower()
        if pattern.endswith('/*'):
            if mimetype.startswith(pattern[:-1]):
                return True
        elif mimetype == pattern:
            return True
    return False


class ProfilePhotos(object):
    """
    Replaces and removes profile photos.

    Parameters
    ----------
    records : module or object
        Provides ``get_profile_photo(user_id) -> str`` and
        ``set_profile_photo(user_id, ref) -> None``, raising
        :class:`.NotFoundError` for unknown users. Normally
        :mod:`userprofile.services.accounts`.
    blobs : :class:`.BlobStore`
        Where the photos themselves are kept.
    default_ref : str
        The reference that means "no custom photo".
    max_bytes : int
        Largest accepted photo.
    allowed_types : iterable
        Accepted content types; see :func:`type_allowed`.
    locks : :class:`.AccountLocks`

    """

    def __init__(self, records: Any, blobs: BlobStore,
                 default_ref: str = DEFAULT_PROFILE_PHOTO,
                 max_bytes: int = MAX_BYTES,
                 allowed_types: Iterable[str] = ALLOWED_TYPES,
                 locks: Optional[AccountLocks] = None) -> None:
        self.records = records
        self.blobs = blobs
        self.default_ref = default_ref
        self.max_bytes = max_bytes
        self.allowed_types = tuple(allowed_types)
        self.locks = locks if locks is not None else LOCKS

    def validate(self, upload: Optional[UploadedFile]) -> None:
        """
        Check that ``upload`` is acceptable as a profile photo.

        Raises
        ------
        :class:`.ValidationError`
            If there is no upload, it is empty, or it is not an image.
        :class:`.UploadTooLarge`
            If it is bigger than :attr:`max_bytes`.

        """
        if upload is None or upload.size == 0:
            raise ValidationError('No file uploaded')
        if not type_allowed(upload.content_type, self.allowed_types):
            raise ValidationError('Only image files are allowed!')
        if upload.size > self.max_bytes:
            raise UploadTooLarge('File size too large')

    def replace(self, user_id: str, upload: UploadedFile) -> str:
        """
        Make ``upload`` the profile photo of a user.

        Parameters
        ----------
        user_id : str
        upload : :class:`.UploadedFile`

        Returns
        -------
        str
            The reference of the new photo.

        Raises
        ------
        :class:`.ValidationError`
            Nothing was written.
        :class:`.StorageWriteError`
            The photo could not be written, or the record could not be saved.
        :class:`.StorageIntegrityError`
            The photo was written, but could not be read back intact.
        :class:`.NotFoundError`
            There is no such user.
        :class:`.ConsistencyError`
            The record was saved, but re-reading it did not show the change.

        """
        self.validate(upload)
        new_ref = self.blobs.write(upload.content, upload.extension)
        logger.debug('Stored new photo %s for user %s', new_ref, user_id)

        with self.locks.hold(user_id):
            # Until the record may refer to it, the new blob is ours to clean
            # up if anything goes wrong.
            may_be_referenced = False
            try:
                self._verify_blob(new_ref, upload.size)
                previous_ref = self.records.get_profile_photo(user_id)
                self.records.set_profile_photo(user_id, new_ref)
                may_be_referenced = True
                stored_ref = self._stored_ref(user_id)
                if stored_ref != new_ref:
                    may_be_referenced = False
                    logger.error('User %s photo is %s after saving %s',
                                 user_id, stored_ref, new_ref)
                    raise ConsistencyError('Database update failed')
            except Exception:
                if not may_be_referenced:
                    self._discard(new_ref)
                raise
            logger.info('User %s photo changed from %s to %s', user_id,
                        previous_ref, new_ref)
            if previous_ref != self.default_ref and previous_ref != new_ref:
                self._reclaim(previous_ref)
        return new_ref

    def remove(self, user_id: str) -> None:
        """
        Reset a user's profile photo to the default.

        The record is saved first, and the old photo deleted afterwards, so
        the record never refers to a photo that is gone. Removing when there
        is no custom photo does nothing.

        Raises
        ------
        :class:`.NotFoundError`
        :class:`.StorageWriteError`

        """
        with self.locks.hold(user_id):
            current_ref = self.records.get_profile_photo(user_id)
            if current_ref == self.default_ref:
                logger.debug('User %s has no custom photo', user_id)
                return
            self.records.set_profile_photo(user_id, self.default_ref)
            logger.info('User %s photo %s removed', user_id, current_ref)
            self._reclaim(current_ref)

    def _verify_blob(self, ref: str, expected_size: int) -> None:
        try:
            actual_size = self.blobs.size(ref)
        except (OSError, ValueError) as e:
            raise StorageIntegrityError(f'File was not saved: {ref}') from e
        if actual_size != expected_size:
            raise StorageIntegrityError(
                f'File {ref} is {actual_size} bytes, expected {expected_size}'
            )

    def _stored_ref(self, user_id: str) -> str:
        try:
            return str(self.records.get_profile_photo(user_id))
        except Exception as e:
            logger.error('Could not re-read user %s after saving: %s',
                         user_id, e)
            raise ConsistencyError('Could not confirm database update') from e

    def _discard(self, ref: str) -> None:
        """Delete a blob that was written during a failed replacement."""
        try:
            self.blobs.delete(ref)
        except (OSError, ValueError) as e:
            logger.error('Could not clean up photo %s; orphaned: %s', ref, e)
        else:
            logger.debug('Cleaned up photo %s', ref)

    def _reclaim(self, ref: str) -> None:
        """Delete a photo that is no longer in use."""
        try:
            self.blobs.delete(ref)
        except (OSError, ValueError) as e:
            logger.warning('Could not delete old photo %s; orphaned: %s',
                           ref, e)


def get_profile_photos(app: Optional[Any] = None) -> ProfilePhotos:
    """Get a :class:`.ProfilePhotos` wired to the application's stores."""
    config = get_application_config(app)
    allowed = str(config.get('PROFILE_PHOTO_TYPES', ','.join(ALLOWED_TYPES)))
    return ProfilePhotos(
        accounts,
        blobs.current_store('profiles'),
        default_ref=str(config.get('DEFAULT_PROFILE_PHOTO',
                                   DEFAULT_PROFILE_PHOTO)),
        max_bytes=int(config.get('PROFILE_PHOTO_MAX_BYTES', MAX_BYTES)),
        allowed_types=[t for t in allowed.split(',') if t.strip()]
    )


def replace_photo(user_id: str, upload: UploadedFile) -> str:
    """Replace a user's profile photo; see :meth:`ProfilePhotos.replace`."""
    return get_profile_photos().replace(user_id, upload)


def remove_photo(user_id: str) -> None:
    """Remove a user's profile photo; see :meth:`ProfilePhotos.remove`."""
    get_profile_photos().remove(user_id)
