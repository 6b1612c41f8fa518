"""Tests for :mod:`userprofile.services.passwords`."""

from unittest import TestCase

from userprofile.services import passwords
from userprofile.services.exceptions import AuthenticationFailed


class TestPasswords(TestCase):
    """Passwords are stored as salted PBKDF2 hashes."""

    def test_check_password(self) -> None:
        """The right password checks out."""
        encrypted = passwords.hash_password('f00b4r')
        self.assertTrue(passwords.check_password('f00b4r', encrypted))

    def test_wrong_password(self) -> None:
        """The wrong password raises :class:`.AuthenticationFailed`."""
        encrypted = passwords.hash_password('f00b4r')
        with self.assertRaises(AuthenticationFailed):
            passwords.check_password('foobar', encrypted)

    def test_salted(self) -> None:
        """The same password hashes differently each time."""
        self.assertNotEqual(passwords.hash_password('f00b4r'),
                            passwords.hash_password('f00b4r'))
        self.assertNotIn('f00b4r', passwords.hash_password('f00b4r'))

    def test_malformed_hash(self) -> None:
        """A malformed stored hash fails authentication."""
        for encrypted in ('', 'nodollar', 'abc$Zm9v', '1000$***'):
            with self.assertRaises(AuthenticationFailed):
                passwords.check_password('f00b4r', encrypted)
