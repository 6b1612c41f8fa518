"""
Controllers for viewing and editing the logged-in user's profile.

The user is identified by the ``user_id`` of their verified session; these
controllers never authenticate anyone themselves.
"""

from typing import Any, Dict, Mapping, Optional, Tuple

import dateutil.parser
from werkzeug.datastructures import FileStorage
from wtforms import Form, StringField
from wtforms.validators import DataRequired, optional

from userprofile import logging, status
from userprofile.context import get_application_config
from userprofile.domain import UserAccount, Certificate
from userprofile.process import photos
from userprofile.services import accounts, blobs
from userprofile.services.exceptions import NotFoundError, ValidationError, \
    UploadTooLarge, StorageWriteError, StorageIntegrityError, ConsistencyError
from .util import formdata, to_upload

logger = logging.getLogger(__name__)

ResponseData = Tuple[dict, int, dict]

USER_NOT_FOUND = {'error': 'User not found'}
NO_FILE = {'error': 'No file uploaded'}
FILE_TOO_LARGE = {'error': 'File size too large'}
CERTIFICATE_FIELDS_REQUIRED = {'error': 'Name, issuer and date are required'}
INVALID_DATE = {'error': 'Invalid certificate date'}
CANT_GET_PROFILE = {'error': 'Error fetching profile'}
CANT_UPDATE_PROFILE = {'error': 'Error updating profile'}
CANT_UPDATE_SOCIAL = {'error': 'Error updating social links'}
CANT_REMOVE_PHOTO = {'error': 'Error removing photo'}
CANT_ADD_CERTIFICATE = {'error': 'Failed to add certificate'}

REQUEST_FIELDS = {
    'name': 'name',
    'fullName': 'full_name',
    'full_name': 'full_name',
    'email': 'email',
    'phone': 'phone',
    'mobile': 'mobile',
    'address': 'address'
}
"""Request parameter names accepted by :func:`update_profile`."""


class CertificateForm(Form):
    """Form for adding a certificate."""

    name = StringField('Name', validators=[DataRequired()])
    issuer = StringField('Issuer', validators=[DataRequired()])
    date = StringField('Date', validators=[DataRequired()])
    description = StringField('Description', validators=[optional()])


def _certificate_data(certificate: Certificate) -> Dict[str, Any]:
    return {
        'name': certificate.name,
        'issuer': certificate.issuer,
        'date': certificate.date,
        'description': certificate.description,
        'fileUrl': certificate.file_url
    }


def _profile_data(user: UserAccount) -> Dict[str, Any]:
    return {
        'id': user.user_id,
        'username': user.username,
        'email': user.email,
        'name': user.name,
        'fullName': user.full_name,
        'year': user.year,
        'phone': user.phone,
        'mobile': user.mobile,
        'address': user.address,
        'profilePhoto': user.profile_photo,
        'socialLinks': user.social_links,
        'certificates': [_certificate_data(c) for c in user.certificates],
        'interests': [{'name': i.name, 'icon': i.icon}
                      for i in user.interests],
        'createdAt': user.created,
        'updatedAt': user.updated
    }


def get_profile(user_id: str) -> ResponseData:
    """Get the profile of a user, without their password."""
    try:
        user = accounts.get_user_by_id(user_id)
    except NotFoundError:
        return USER_NOT_FOUND, status.HTTP_404_NOT_FOUND, {}
    except IOError as e:
        logger.error('Could not load user %s: %s', user_id, e)
        return CANT_GET_PROFILE, status.HTTP_500_INTERNAL_SERVER_ERROR, {}
    return _profile_data(user), status.HTTP_200_OK, {}


def update_profile(user_id: str,
                   params: Optional[Mapping[str, Any]]) -> ResponseData:
    """
    Update the plain profile fields of a user.

    Only non-empty values are applied; see
    :func:`userprofile.services.accounts.update_profile`.
    """
    fields = {}
    for key, value in formdata(params).items():
        if key in REQUEST_FIELDS and value:
            fields[REQUEST_FIELDS[key]] = value
    try:
        accounts.update_profile(user_id, fields)
    except NotFoundError:
        return USER_NOT_FOUND, status.HTTP_404_NOT_FOUND, {}
    except ValidationError as e:
        return {'error': str(e)}, status.HTTP_400_BAD_REQUEST, {}
    except (StorageWriteError, IOError) as e:
        logger.error('Could not update user %s: %s', user_id, e)
        return CANT_UPDATE_PROFILE, status.HTTP_500_INTERNAL_SERVER_ERROR, {}
    return {'message': 'Profile updated successfully'}, status.HTTP_200_OK, {}


def update_social_links(user_id: str,
                        params: Optional[Mapping[str, Any]]) -> ResponseData:
    """Update any of the social links of a user that are provided."""
    try:
        links = accounts.update_social_links(user_id, formdata(params))
    except NotFoundError:
        return USER_NOT_FOUND, status.HTTP_404_NOT_FOUND, {}
    except (StorageWriteError, IOError) as e:
        logger.error('Could not update links of user %s: %s', user_id, e)
        return CANT_UPDATE_SOCIAL, status.HTTP_500_INTERNAL_SERVER_ERROR, {}
    data = {'message': 'Social links updated successfully',
            'socialLinks': links}
    return data, status.HTTP_200_OK, {}


def upload_photo(user_id: str,
                 file_storage: Optional[FileStorage]) -> ResponseData:
    """
    Replace the profile photo of a user with an uploaded image.

    See :meth:`userprofile.process.photos.ProfilePhotos.replace`.
    """
    upload = to_upload(file_storage)
    if upload is None:
        return NO_FILE, status.HTTP_400_BAD_REQUEST, {}
    try:
        photo_ref = photos.replace_photo(user_id, upload)
    except UploadTooLarge:
        return FILE_TOO_LARGE, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, {}
    except ValidationError as e:
        return {'success': False, 'error': str(e)}, \
            status.HTTP_400_BAD_REQUEST, {}
    except NotFoundError:
        return USER_NOT_FOUND, status.HTTP_404_NOT_FOUND, {}
    except (StorageWriteError, StorageIntegrityError, ConsistencyError,
            IOError) as e:
        logger.error('Photo upload for user %s failed: %s', user_id, e)
        return {'success': False, 'error': str(e)}, \
            status.HTTP_500_INTERNAL_SERVER_ERROR, {}
    data = {
        'success': True,
        'message': 'Profile photo updated successfully',
        'filename': photo_ref
    }
    return data, status.HTTP_200_OK, {}


def remove_photo(user_id: str) -> ResponseData:
    """Reset the profile photo of a user to the default."""
    try:
        photos.remove_photo(user_id)
    except NotFoundError:
        return USER_NOT_FOUND, status.HTTP_404_NOT_FOUND, {}
    except (StorageWriteError, IOError) as e:
        logger.error('Could not remove photo of user %s: %s', user_id, e)
        return CANT_REMOVE_PHOTO, status.HTTP_500_INTERNAL_SERVER_ERROR, {}
    data = {'message': 'Profile photo removed successfully'}
    return data, status.HTTP_200_OK, {}


def add_certificate(user_id: str, params: Optional[Mapping[str, Any]],
                    file_storage: Optional[FileStorage] = None) \
        -> ResponseData:
    """
    Add a certificate to the profile of a user.

    If a file is attached, it is stored first and linked from the
    certificate; it is deleted again if the certificate cannot be saved.
    """
    form = CertificateForm(formdata(params))
    if not form.validate():
        return CERTIFICATE_FIELDS_REQUIRED, status.HTTP_400_BAD_REQUEST, {}
    try:
        issued = dateutil.parser.parse(form.date.data)
    except (ValueError, OverflowError):
        return INVALID_DATE, status.HTTP_400_BAD_REQUEST, {}

    try:
        accounts.get_user_by_id(user_id)
    except NotFoundError:
        return USER_NOT_FOUND, status.HTTP_404_NOT_FOUND, {}

    upload = to_upload(file_storage)
    config = get_application_config()
    store = blobs.current_store('certificates')
    file_ref = None
    if upload is not None:
        if upload.size > int(config.get('CERTIFICATE_MAX_BYTES',
                                        10 * 1024 * 1024)):
            return FILE_TOO_LARGE, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, {}
        try:
            file_ref = store.write(upload.content, upload.extension)
        except StorageWriteError as e:
            logger.error('Could not store certificate file: %s', e)
            return CANT_ADD_CERTIFICATE, \
                status.HTTP_500_INTERNAL_SERVER_ERROR, {}

    certificate = Certificate(
        name=form.name.data,
        issuer=form.issuer.data,
        date=issued,
        description=form.description.data or '',
        file_url=f'/uploads/certificates/{file_ref}' if file_ref else None
    )
    try:
        accounts.add_certificate(user_id, certificate)
    except (NotFoundError, StorageWriteError, IOError) as e:
        logger.error('Could not add certificate for user %s: %s',
                     user_id, e)
        if file_ref is not None:
            try:
                store.delete(file_ref)
            except OSError as exc:
                logger.warning('Could not delete certificate file %s;'
                               ' orphaned: %s', file_ref, exc)
        if isinstance(e, NotFoundError):
            return USER_NOT_FOUND, status.HTTP_404_NOT_FOUND, {}
        return CANT_ADD_CERTIFICATE, status.HTTP_500_INTERNAL_SERVER_ERROR, {}
    logger.debug('Added certificate %s for user %s', certificate.name,
                 user_id)
    return _certificate_data(certificate), status.HTTP_200_OK, {}
