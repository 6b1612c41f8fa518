"""Tests for :mod:`userprofile.process.photos`."""

import os
import shutil
import tempfile
import threading
from typing import Dict, List
from unittest import TestCase, mock

from userprofile.domain import UploadedFile, DEFAULT_PROFILE_PHOTO
from userprofile.process.photos import ProfilePhotos, AccountLocks, \
    type_allowed
from userprofile.services.blobs import BlobStore
from userprofile.services.exceptions import ValidationError, UploadTooLarge, \
    NotFoundError, StorageWriteError, StorageIntegrityError, ConsistencyError

DEFAULT = DEFAULT_PROFILE_PHOTO


class FakeRecords(object):
    """Keeps photo references for users in a dict."""

    def __init__(self, users: Dict[str, str]) -> None:
        self.users = dict(users)
        self.fail_save = False
        self.lie_on_save = False
        self.saves: List[str] = []

    def get_profile_photo(self, user_id: str) -> str:
        if user_id not in self.users:
            raise NotFoundError(f'No such user: {user_id}')
        return self.users[user_id]

    def set_profile_photo(self, user_id: str, photo_ref: str) -> None:
        if user_id not in self.users:
            raise NotFoundError(f'No such user: {user_id}')
        if self.fail_save:
            raise StorageWriteError('Could not save profile photo')
        self.saves.append(photo_ref)
        if not self.lie_on_save:
            self.users[user_id] = photo_ref


def png(size: int) -> UploadedFile:
    return UploadedFile('me.png', 'image/png', b'x' * size)


class PhotoTestCase(TestCase):
    """Sets up a blob store in a temporary directory."""

    def setUp(self) -> None:
        """Create an empty blob store and a single user without a photo."""
        self.root = tempfile.mkdtemp()
        self.blobs = BlobStore(os.path.join(self.root, 'profiles'))
        self.records = FakeRecords({'1': DEFAULT})
        self.photos = ProfilePhotos(self.records, self.blobs,
                                    default_ref=DEFAULT,
                                    max_bytes=5 * 1024 * 1024,
                                    allowed_types=['image/*'],
                                    locks=AccountLocks())

    def tearDown(self) -> None:
        """Remove the blob directory."""
        shutil.rmtree(self.root)

    def stored(self) -> List[str]:
        """Blobs currently in the store."""
        return sorted(os.listdir(self.blobs.root))


class TestReplacePhoto(PhotoTestCase):
    """:meth:`.ProfilePhotos.replace` swaps in a new photo."""

    def test_first_photo(self) -> None:
        """A user with no photo gets the new one."""
        ref = self.photos.replace('1', png(1024))
        self.assertEqual(self.records.users['1'], ref)
        self.assertEqual(self.stored(), [ref])
        self.assertEqual(self.blobs.read(ref), b'x' * 1024)
        self.assertTrue(ref.endswith('.png'))

    def test_second_photo_reclaims_first(self) -> None:
        """The previous photo is deleted once the new one is in place."""
        ref_a = self.photos.replace('1', png(1024))
        ref_b = self.photos.replace('1', png(2048))
        self.assertNotEqual(ref_a, ref_b)
        self.assertEqual(self.records.users['1'], ref_b)
        self.assertFalse(self.blobs.exists(ref_a))
        self.assertEqual(self.stored(), [ref_b])

    def test_too_large(self) -> None:
        """A 6 MiB upload is rejected before anything is written."""
        with self.assertRaises(ValidationError):
            self.photos.replace('1', png(6 * 1024 * 1024))
        self.assertEqual(self.stored(), [])
        self.assertEqual(self.records.users['1'], DEFAULT)

    def test_too_large_is_distinguishable(self) -> None:
        """Oversized uploads raise :class:`.UploadTooLarge`."""
        with self.assertRaises(UploadTooLarge):
            self.photos.replace('1', png(6 * 1024 * 1024))

    def test_not_an_image(self) -> None:
        """A non-image upload is rejected before anything is written."""
        upload = UploadedFile('notes.txt', 'text/plain', b'hello')
        with self.assertRaises(ValidationError):
            self.photos.replace('1', upload)
        self.assertEqual(self.stored(), [])

    def test_empty_upload(self) -> None:
        """An empty or missing upload is rejected."""
        with self.assertRaises(ValidationError):
            self.photos.replace('1', png(0))
        with self.assertRaises(ValidationError):
            self.photos.replace('1', None)     # type: ignore
        self.assertEqual(self.stored(), [])

    def test_unknown_user(self) -> None:
        """Replacing the photo of a missing user leaves no orphan."""
        with self.assertRaises(NotFoundError):
            self.photos.replace('42', png(1024))
        self.assertEqual(self.stored(), [])

    def test_save_fails(self) -> None:
        """If the record can't be saved, the new blob is deleted."""
        ref_a = self.photos.replace('1', png(1024))
        self.records.fail_save = True
        with self.assertRaises(StorageWriteError):
            self.photos.replace('1', png(2048))
        self.assertEqual(self.records.users['1'], ref_a)
        self.assertEqual(self.stored(), [ref_a])

    def test_save_does_not_stick(self) -> None:
        """If the saved change is not there on re-read, that's an error."""
        ref_a = self.photos.replace('1', png(1024))
        self.records.lie_on_save = True
        with self.assertRaises(ConsistencyError):
            self.photos.replace('1', png(2048))
        self.assertEqual(self.records.users['1'], ref_a)
        self.assertEqual(self.stored(), [ref_a])

    def test_write_fails(self) -> None:
        """If the blob can't be written, the record is untouched."""
        with mock.patch.object(self.blobs, 'write') as mock_write:
            mock_write.side_effect = StorageWriteError('disk full')
            with self.assertRaises(StorageWriteError):
                self.photos.replace('1', png(1024))
        self.assertEqual(self.records.users['1'], DEFAULT)
        self.assertEqual(self.records.saves, [])

    def test_blob_is_truncated(self) -> None:
        """If the blob does not read back intact, it is deleted."""
        with mock.patch.object(self.blobs, 'size', return_value=10):
            with self.assertRaises(StorageIntegrityError):
                self.photos.replace('1', png(1024))
        self.assertEqual(self.stored(), [])
        self.assertEqual(self.records.users['1'], DEFAULT)

    def test_blob_vanishes(self) -> None:
        """If the blob is gone right after writing, nothing is saved."""
        with mock.patch.object(self.blobs, 'size') as mock_size:
            mock_size.side_effect = FileNotFoundError('gone')
            with self.assertRaises(StorageIntegrityError):
                self.photos.replace('1', png(1024))
        self.assertEqual(self.stored(), [])
        self.assertEqual(self.records.users['1'], DEFAULT)
        self.assertEqual(self.records.saves, [])

    def test_reread_fails(self) -> None:
        """
        If the saved record can't be re-read, the new blob is kept.

        The record may refer to it, so deleting it could leave the user with
        a photo that does not exist. The previous photo is kept as well.
        """
        ref_a = self.photos.replace('1', png(1024))
        real_get = self.records.get_profile_photo
        calls: List[str] = []

        def get_profile_photo(user_id: str) -> str:
            calls.append(user_id)
            if len(calls) == 2:
                raise OSError('database went away')
            return real_get(user_id)

        with mock.patch.object(self.records, 'get_profile_photo',
                               side_effect=get_profile_photo):
            with self.assertLogs('userprofile.process.photos',
                                 level='ERROR'):
                with self.assertRaises(ConsistencyError):
                    self.photos.replace('1', png(2048))
        ref_b = self.records.users['1']
        self.assertNotEqual(ref_b, ref_a)
        self.assertTrue(self.blobs.exists(ref_b))
        self.assertTrue(self.blobs.exists(ref_a))
        self.assertEqual(self.stored(), sorted([ref_a, ref_b]))

    def test_old_photo_cannot_be_deleted(self) -> None:
        """Failing to reclaim the old photo is logged, not raised."""
        ref_a = self.photos.replace('1', png(1024))
        real_delete = self.blobs.delete

        def delete(ref: str) -> None:
            if ref == ref_a:
                raise PermissionError('nope')
            real_delete(ref)

        with mock.patch.object(self.blobs, 'delete', side_effect=delete):
            with self.assertLogs('userprofile.process.photos',
                                 level='WARNING') as logs:
                ref_b = self.photos.replace('1', png(2048))
        self.assertEqual(self.records.users['1'], ref_b)
        self.assertIn(ref_a, ''.join(logs.output))
        self.assertEqual(self.stored(), sorted([ref_a, ref_b]))

    def test_old_photo_already_gone(self) -> None:
        """An old photo that has vanished is not a problem."""
        self.records.users['1'] = '1700000000000-deadbeef.png'
        ref = self.photos.replace('1', png(1024))
        self.assertEqual(self.records.users['1'], ref)
        self.assertEqual(self.stored(), [ref])

    def test_concurrent_replacements(self) -> None:
        """Concurrent replacements leave exactly one photo, the current one."""
        errors: List[Exception] = []

        def replace() -> None:
            try:
                self.photos.replace('1', png(1024))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=replace) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(errors, [])
        self.assertEqual(self.stored(), [self.records.users['1']])


class TestRemovePhoto(PhotoTestCase):
    """:meth:`.ProfilePhotos.remove` resets the photo to the default."""

    def test_remove(self) -> None:
        """The photo is deleted and the record reset."""
        self.photos.replace('1', png(1024))
        self.photos.remove('1')
        self.assertEqual(self.records.users['1'], DEFAULT)
        self.assertEqual(self.stored(), [])

    def test_remove_twice(self) -> None:
        """Removing again does nothing, and is not an error."""
        self.photos.replace('1', png(1024))
        self.photos.remove('1')
        saves = len(self.records.saves)
        self.photos.remove('1')
        self.assertEqual(self.records.users['1'], DEFAULT)
        self.assertEqual(len(self.records.saves), saves)

    def test_remove_unknown_user(self) -> None:
        """Raises :class:`.NotFoundError`."""
        with self.assertRaises(NotFoundError):
            self.photos.remove('42')

    def test_save_fails(self) -> None:
        """If the record can't be saved, the photo is kept."""
        ref = self.photos.replace('1', png(1024))
        self.records.fail_save = True
        with self.assertRaises(StorageWriteError):
            self.photos.remove('1')
        self.assertEqual(self.records.users['1'], ref)
        self.assertTrue(self.blobs.exists(ref))


class TestAccountLocks(TestCase):
    """:class:`.AccountLocks` serializes work per account."""

    def test_released_locks_are_dropped(self) -> None:
        """Once nobody holds or waits for a lock, it is forgotten."""
        locks = AccountLocks()
        for user_id in range(100):
            with locks.hold(str(user_id)):
                self.assertEqual(len(locks), 1)
        self.assertEqual(len(locks), 0)

    def test_dropped_on_error(self) -> None:
        """A lock is released and forgotten if the block raises."""
        locks = AccountLocks()
        with self.assertRaises(RuntimeError):
            with locks.hold('1'):
                raise RuntimeError('oops')
        self.assertEqual(len(locks), 0)
        with locks.hold('1'):
            pass

    def test_same_account_is_serialized(self) -> None:
        """A second holder for the same account waits for the first."""
        locks = AccountLocks()
        events: List[str] = []

        def second() -> None:
            with locks.hold('1'):
                events.append('second')

        with locks.hold('1'):
            thread = threading.Thread(target=second)
            thread.start()
            thread.join(0.2)
            self.assertTrue(thread.is_alive())
            events.append('first')
        thread.join()
        self.assertEqual(events, ['first', 'second'])
        self.assertEqual(len(locks), 0)


class TestTypeAllowed(TestCase):
    """:func:`.type_allowed` matches content types against patterns."""

    def test_wildcard(self) -> None:
        """``image/*`` accepts any image subtype."""
        self.assertTrue(type_allowed('image/png', ['image/*']))
        self.assertTrue(type_allowed('IMAGE/JPEG', ['image/*']))
        self.assertFalse(type_allowed('text/plain', ['image/*']))

    def test_exact(self) -> None:
        """An exact type only accepts itself."""
        self.assertTrue(type_allowed('image/png; charset=binary',
                                     ['image/png']))
        self.assertFalse(type_allowed('image/gif', ['image/png']))

    def test_missing(self) -> None:
        """No declared type is never accepted."""
        self.assertFalse(type_allowed('', ['image/*']))
        self.assertFalse(type_allowed(None, ['image/*']))
