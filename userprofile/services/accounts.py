"""
Provides access to user account records.

All functions here must be called within a Flask application context, since
they use the Flask-SQLAlchemy session.
"""

from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from userprofile import logging
from userprofile.context import get_application_config
from userprofile.domain import UserAccount, UserRegistration, Certificate, \
    Interest, SOCIAL_PLATFORMS, DEFAULT_PROFILE_PHOTO
from . import passwords
from .database import db, transaction, DBUser, DBCertificate
from .exceptions import NotFoundError, RegistrationFailed, AccountExists, \
    AuthenticationFailed, StorageWriteError, ValidationError

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ('name', 'full_name', 'email', 'phone', 'mobile', 'address')
"""Fields that a user may change through a plain profile update."""


def _default_photo() -> str:
    config = get_application_config()
    return str(config.get('DEFAULT_PROFILE_PHOTO', DEFAULT_PROFILE_PHOTO))


def _to_domain(db_user: DBUser) -> UserAccount:
    return UserAccount(
        user_id=str(db_user.user_id),
        username=db_user.username,
        email=db_user.email,
        name=db_user.name,
        full_name=db_user.full_name,
        year=db_user.year,
        phone=db_user.phone,
        mobile=db_user.mobile,
        address=db_user.address,
        profile_photo=db_user.profile_photo,
        social_links=_social_links(db_user),
        certificates=[_certificate_to_domain(c) for c in db_user.certificates],
        interests=[Interest(name=i.name, icon=i.icon)
                   for i in db_user.interests],
        created=db_user.created,
        updated=db_user.updated
    )


def _certificate_to_domain(db_cert: DBCertificate) -> Certificate:
    return Certificate(
        name=db_cert.name,
        issuer=db_cert.issuer,
        date=db_cert.date,
        description=db_cert.description,
        file_url=db_cert.file_url
    )


def _social_links(db_user: DBUser) -> Dict[str, str]:
    return {platform: getattr(db_user, platform)
            for platform in SOCIAL_PLATFORMS
            if getattr(db_user, platform) is not None}


def _get_db_user(user_id: str, refresh: bool = False) -> DBUser:
    try:
        pk = int(user_id)
    except (TypeError, ValueError) as e:
        raise NotFoundError(f'No such user: {user_id}') from e
    try:
        db_user: Optional[DBUser] = db.session.get(
            DBUser, pk, populate_existing=refresh
        )
    except SQLAlchemyError as e:
        raise IOError(f'Could not query database: {e}') from e
    if db_user is None:
        raise NotFoundError(f'No such user: {user_id}')
    return db_user


def _commit(what: str, conflict: Optional[str] = None) -> None:
    """Commit the session; a unique-constraint violation is ``conflict``."""
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if conflict is None:
            logger.error('Could not save %s: %s', what, e)
            raise StorageWriteError(f'Could not save {what}') from e
        logger.debug('Could not save %s: %s', what, e)
        raise ValidationError(conflict) from e
    except SQLAlchemyError as e:
        logger.error('Could not save %s: %s', what, e)
        db.session.rollback()
        raise StorageWriteError(f'Could not save {what}') from e


def username_exists(username: str) -> bool:
    """Determine whether or not a username already exists in the DB."""
    with transaction() as session:
        data = session.query(DBUser) \
            .filter(DBUser.username == username) \
            .first()
        return data is not None


def email_exists(email: str) -> bool:
    """Determine whether or not a email address already exists in the DB."""
    with transaction() as session:
        data = session.query(DBUser).filter(DBUser.email == email).first()
        return data is not None


def register(registration: UserRegistration) -> UserAccount:
    """
    Create a new user.

    Parameters
    ----------
    registration : :class:`.UserRegistration`
        User data for the new account, including the plain-text password.

    Returns
    -------
    :class:`.UserAccount`
        Data about the created user.

    Raises
    ------
    :class:`.AccountExists`
        If the username or e-mail address is already taken.
    :class:`.RegistrationFailed`
        If the account could not be created for any other reason.

    """
    db_user = DBUser(
        username=registration.username,
        email=registration.email,
        password_enc=passwords.hash_password(registration.password),
        name=registration.name,
        full_name=registration.name,
        year=registration.year,
        phone=registration.phone,
        mobile=registration.mobile,
        address=registration.address,
        profile_photo=_default_photo()
    )
    try:
        with transaction() as session:
            session.add(db_user)
    except IntegrityError as e:
        logger.debug(e)
        raise AccountExists(f'Already registered: {registration.username}') \
            from e
    except Exception as e:
        logger.debug(e)
        raise RegistrationFailed('Could not create user') from e
    logger.info('Registered user %s as %s', db_user.user_id, db_user.username)
    return _to_domain(db_user)


def authenticate(username: str, password: str) -> UserAccount:
    """
    Verify a username and password.

    Raises
    ------
    :class:`.AuthenticationFailed`
        If there is no such user, or the password is wrong. The two cases are
        not distinguished.

    """
    db_user = db.session.query(DBUser) \
        .filter(DBUser.username == username) \
        .first()
    if db_user is None:
        raise AuthenticationFailed('No such user')
    passwords.check_password(password, db_user.password_enc)
    return _to_domain(db_user)


def get_user_by_id(user_id: str) -> UserAccount:
    """
    Load user data from the database.

    Raises
    ------
    :class:`.NotFoundError`
    IOError
        When there is a problem querying the database.

    """
    return _to_domain(_get_db_user(user_id))


def update_profile(user_id: str, fields: Mapping[str, Any]) -> UserAccount:
    """
    Update the plain profile fields of a user.

    Only fields in :const:`PROFILE_FIELDS` that are present in ``fields`` and
    non-empty are changed; everything else is left alone.
    """
    db_user = _get_db_user(user_id)
    changes = {key: fields[key] for key in PROFILE_FIELDS if fields.get(key)}
    new_email = changes.get('email')
    if new_email and new_email != db_user.email and email_exists(new_email):
        raise ValidationError('Email already in use')
    for key, value in changes.items():
        if getattr(db_user, key) != value:
            setattr(db_user, key, value)
    _commit('profile', conflict='Email already in use')
    return _to_domain(db_user)


def update_social_links(user_id: str, links: Mapping[str, Any]) \
        -> Dict[str, str]:
    """
    Update the social links of a user.

    Any known platform present in ``links`` is changed, even to an empty
    string; unknown platforms are ignored.
    """
    db_user = _get_db_user(user_id)
    for platform in SOCIAL_PLATFORMS:
        if platform in links and links[platform] is not None:
            setattr(db_user, platform, str(links[platform]))
    _commit('social links')
    return _social_links(db_user)


def add_certificate(user_id: str, certificate: Certificate) -> Certificate:
    """Append a certificate to a user's profile."""
    db_user = _get_db_user(user_id)
    db_user.certificates.append(DBCertificate(
        name=certificate.name,
        issuer=certificate.issuer,
        date=certificate.date,
        description=certificate.description or '',
        file_url=certificate.file_url
    ))
    _commit('certificate')
    return certificate


def get_profile_photo(user_id: str) -> str:
    """
    Get the current photo reference of a user, straight from the database.

    Anything cached in the session for this user is refreshed first, so that
    this reflects what was actually stored.
    """
    return str(_get_db_user(user_id, refresh=True).profile_photo)


def set_profile_photo(user_id: str, photo_ref: str) -> None:
    """
    Point a user's profile photo at ``photo_ref`` and save.

    Raises
    ------
    :class:`.NotFoundError`
    :class:`.StorageWriteError`
        If the change could not be committed. The record is rolled back.

    """
    db_user = _get_db_user(user_id)
    db_user.profile_photo = photo_ref
    _commit('profile photo')
