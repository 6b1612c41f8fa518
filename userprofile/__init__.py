"""
User profile service.

The user profile service is a Flask application that provides a JSON API for
account registration, authentication, and profile management. It is the
primary repository for user data: account details, contact information,
social links, certificates, and the user's profile photo.

Context
-------
Users create an account with a username, e-mail address and password, and
then log in to obtain a session cookie. The session cookie is a signed token
that refers to a session held in a key-value store (redis). Every profile
route requires a valid session; the user whose profile is changed is always
the user identified by the session.

Uploaded files (profile photos and certificate scans) are written to the
local filesystem under ``UPLOAD_ROOT``, one directory per kind of upload, and
are referred to from the account record by their generated filename. The
account record itself lives in a relational database accessed through
SQLAlchemy.

Replacing a profile photo touches both stores, so it is handled by a
dedicated workflow (see :mod:`userprofile.process.photos`) that cleans up
after itself when any step fails: an account never ends up referring to a
photo that does not exist.
"""
