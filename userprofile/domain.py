"""Defines the core data structures for the profile service."""

from typing import Dict, List, NamedTuple, Optional
from datetime import datetime


SOCIAL_PLATFORMS = ('github', 'twitter', 'instagram', 'facebook')
"""Platforms for which a user may publish a profile link."""

DEFAULT_PROFILE_PHOTO = 'default-avatar.png'
"""Marks an account without a custom photo. Never a generated blob name."""


class Certificate(NamedTuple):
    """A certificate that the user has added to their profile."""

    name: str
    issuer: str
    date: datetime
    description: str = ''

    file_url: Optional[str] = None
    """Where the uploaded scan can be retrieved, if one was uploaded."""


class Interest(NamedTuple):
    """Something the user is interested in, with an icon to show for it."""

    name: str
    icon: str = ''


class UserAccount(NamedTuple):
    """Represents a user account and its profile."""

    username: str
    """Unique, chosen at registration."""

    email: str
    """Unique primary e-mail address."""

    user_id: Optional[str] = None
    """Unique identifier for the user. If ``None``, the user does not exist."""

    name: str = ''
    """Display name."""

    full_name: str = ''
    year: str = ''
    phone: str = ''
    mobile: str = ''
    address: str = ''

    profile_photo: str = DEFAULT_PROFILE_PHOTO
    """Reference to the current photo blob, or the no-custom-photo marker."""

    social_links: Dict[str, str] = {}
    certificates: List[Certificate] = []
    interests: List[Interest] = []

    created: Optional[datetime] = None
    updated: Optional[datetime] = None


class UserRegistration(NamedTuple):
    """Represents a request to register a new user."""

    username: str
    password: str
    email: str
    name: str = ''
    year: str = ''
    phone: str = ''
    mobile: str = ''
    address: str = ''


class UploadedFile(NamedTuple):
    """A single file received in a multipart request."""

    filename: str
    """Name of the file on the client's machine."""

    content_type: str
    """Declared MIME type."""

    content: bytes

    @property
    def size(self) -> int:
        """Size of the content in bytes."""
        return len(self.content)

    @property
    def extension(self) -> str:
        """Extension of the original filename, including the dot."""
        _, dot, ext = self.filename.rpartition('.')
        return f'.{ext}' if dot and ext else ''


class UserSession(NamedTuple):
    """An authenticated session."""

    session_id: str
    user_id: str
    username: str
    start_time: datetime
    end_time: datetime
    nonce: str

    @property
    def expired(self) -> bool:
        """Whether the session has ended."""
        return self.end_time <= datetime.now(tz=self.end_time.tzinfo)
