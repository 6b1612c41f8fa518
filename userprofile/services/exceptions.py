"""Exceptions raised by the profile service's backing services."""


class ValidationError(RuntimeError):
    """Input was rejected before any storage was touched."""


class NotFoundError(RuntimeError):
    """The referenced user account does not exist."""


class StorageWriteError(RuntimeError):
    """A blob write or record save did not complete."""


class StorageIntegrityError(RuntimeError):
    """A blob was written, but could not be read back intact."""


class ConsistencyError(RuntimeError):
    """A record save reported success, but the change is not there."""


class RegistrationFailed(RuntimeError):
    """Could not create a new user account."""


class AccountExists(RegistrationFailed):
    """The username or e-mail address is already taken."""


class AuthenticationFailed(RuntimeError):
    """Failed to authenticate user with provided credentials."""


class SessionCreationFailed(RuntimeError):
    """Failed to create a session in the session store."""


class SessionDeletionFailed(RuntimeError):
    """Failed to delete a session in the session store."""


class SessionUnknown(RuntimeError):
    """Failed to locate a session in the session store."""


class InvalidToken(RuntimeError):
    """A session cookie is malformed, forged, or expired."""


class UploadTooLarge(ValidationError):
    """An upload is bigger than allowed for its kind."""
