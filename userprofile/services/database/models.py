"""Profile service database models."""

from datetime import datetime

from pytz import UTC
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from flask_sqlalchemy import SQLAlchemy

from userprofile.domain import DEFAULT_PROFILE_PHOTO

db: SQLAlchemy = SQLAlchemy()


def _now() -> datetime:
    return datetime.now(tz=UTC)


class DBUser(db.Model):  # type: ignore
    """
    One row per user account.

    +---------------+--------------+------+-----+--------------------+
    | Field         | Type         | Null | Key | Default            |
    +---------------+--------------+------+-----+--------------------+
    | user_id       | int          | NO   | PRI | NULL               |
    | username      | varchar(64)  | NO   | UNI | NULL               |
    | email         | varchar(255) | NO   | UNI | NULL               |
    | password_enc  | varchar(255) | NO   |     | NULL               |
    | profile_photo | varchar(255) | NO   |     | default-avatar.png |
    | ...           |              |      |     |                    |
    +---------------+--------------+------+-----+--------------------+
    """

    __tablename__ = 'users'

    user_id = Column(Integer, primary_key=True)
    username = Column(String(64), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_enc = Column(String(255), nullable=False)

    name = Column(String(255), nullable=False, default='')
    full_name = Column(String(255), nullable=False, default='')
    year = Column(String(32), nullable=False, default='')
    phone = Column(String(64), nullable=False, default='')
    mobile = Column(String(64), nullable=False, default='')
    address = Column(Text, nullable=False, default='')

    profile_photo = Column(String(255), nullable=False,
                           default=DEFAULT_PROFILE_PHOTO)
    """Filename of the current photo in the ``profiles`` blob store."""

    github = Column(String(255))
    twitter = Column(String(255))
    instagram = Column(String(255))
    facebook = Column(String(255))

    created = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated = Column(DateTime(timezone=True), nullable=False, default=_now,
                     onupdate=_now)

    certificates = relationship('DBCertificate', back_populates='user',
                                order_by='DBCertificate.certificate_id',
                                cascade='all, delete-orphan')
    interests = relationship('DBInterest', back_populates='user',
                             order_by='DBInterest.interest_id',
                             cascade='all, delete-orphan')


class DBCertificate(db.Model):  # type: ignore
    """A certificate listed on a user's profile."""

    __tablename__ = 'user_certificates'

    certificate_id = Column(Integer, primary_key=True)
    user_id = Column(ForeignKey('users.user_id'), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    issuer = Column(String(255), nullable=False)
    date = Column(DateTime, nullable=False)
    description = Column(Text, nullable=False, default='')
    file_url = Column(String(255))

    user = relationship('DBUser', back_populates='certificates')


class DBInterest(db.Model):  # type: ignore
    """An interest listed on a user's profile."""

    __tablename__ = 'user_interests'

    interest_id = Column(Integer, primary_key=True)
    user_id = Column(ForeignKey('users.user_id'), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    icon = Column(String(255), nullable=False, default='')

    user = relationship('DBUser', back_populates='interests')
