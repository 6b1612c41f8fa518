"""
Controller for registration.

Anyone may register an account with a unique username and e-mail address.
Registering does not log the user in; they do that separately.
"""

from typing import Any, Mapping, Optional, Tuple

from wtforms import Form, StringField, PasswordField
from wtforms.validators import DataRequired, Length, Regexp, optional

from userprofile import logging, status
from userprofile.domain import UserRegistration
from userprofile.services import accounts
from userprofile.services.exceptions import RegistrationFailed, \
    AccountExists
from .util import formdata, first_error

logger = logging.getLogger(__name__)

ResponseData = Tuple[dict, int, dict]

REGISTERED = {'message': 'Registration successful'}
ALREADY_EXISTS = {'error': 'Username or email already exists'}
CANT_REGISTER = {'error': 'Error registering user'}


class RegistrationForm(Form):
    """User registration form."""

    username = StringField('Username',
                           validators=[DataRequired(), Length(max=64)])
    password = PasswordField('Password', validators=[DataRequired()])
    email = StringField(
        'Email address',
        validators=[DataRequired(), Length(max=255),
                    Regexp(r'^[^@\s]+@[^@\s]+$',
                           message='Invalid email address')]
    )
    name = StringField('Name', validators=[optional(), Length(max=255)])
    year = StringField('Year', validators=[optional(), Length(max=32)])
    phone = StringField('Phone', validators=[optional(), Length(max=64)])
    mobile = StringField('Mobile', validators=[optional(), Length(max=64)])
    address = StringField('Address', validators=[optional()])

    def to_domain(self) -> UserRegistration:
        """Generate a :class:`.UserRegistration` from this form's data."""
        return UserRegistration(
            username=self.username.data.strip(),
            password=self.password.data,
            email=self.email.data.strip(),
            name=self.name.data or '',
            year=self.year.data or '',
            phone=self.phone.data or '',
            mobile=self.mobile.data or '',
            address=self.address.data or ''
        )


def register(params: Optional[Mapping[str, Any]]) -> ResponseData:
    """
    Register a new user account.

    Parameters
    ----------
    params : dict-like
        Request data. ``username``, ``password`` and ``email`` are required;
        ``name``, ``year``, ``phone``, ``mobile`` and ``address`` are optional.

    Returns
    -------
    dict
        Response data.
    int
        HTTP status code.
    dict
        Extra headers for the response.

    """
    form = RegistrationForm(formdata(params))
    if not form.validate():
        logger.debug('Registration form not valid: %s', form.errors)
        return {'error': first_error(form.errors)}, \
            status.HTTP_400_BAD_REQUEST, {}

    registration = form.to_domain()
    if accounts.username_exists(registration.username) \
            or accounts.email_exists(registration.email):
        logger.debug('Username or email for %s is taken',
                     registration.username)
        return ALREADY_EXISTS, status.HTTP_400_BAD_REQUEST, {}

    try:
        user = accounts.register(registration)
    except AccountExists:
        logger.debug('Username or email for %s was taken while registering',
                     registration.username)
        return ALREADY_EXISTS, status.HTTP_400_BAD_REQUEST, {}
    except RegistrationFailed as e:
        logger.error('Registration failed for %s: %s',
                     registration.username, e)
        return CANT_REGISTER, status.HTTP_500_INTERNAL_SERVER_ERROR, {}
    logger.debug('Registered user %s', user.user_id)
    return REGISTERED, status.HTTP_201_CREATED, {}
