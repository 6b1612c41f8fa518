"""Helpers shared by the controllers."""

from typing import Any, Mapping, Optional

from werkzeug.datastructures import FileStorage, MultiDict

from userprofile.domain import UploadedFile


def formdata(params: Optional[Mapping[str, Any]]) -> MultiDict:
    """
    Get request parameters in a form that :mod:`wtforms` will accept.

    JSON bodies may carry non-string scalars (e.g. ``"year": 2024``); those
    are rendered as strings, and ``null`` is dropped.
    """
    if params is None:
        return MultiDict()
    if isinstance(params, MultiDict):
        return params
    return MultiDict({key: str(value) for key, value in params.items()
                      if value is not None and not isinstance(value, dict)})


def to_upload(file_storage: Optional[FileStorage]) -> Optional[UploadedFile]:
    """Read a file from a multipart request, if one was sent."""
    if file_storage is None or not file_storage.filename:
        return None
    return UploadedFile(
        filename=file_storage.filename,
        content_type=file_storage.mimetype or '',
        content=file_storage.read()
    )


def first_error(errors: Mapping[str, Any]) -> str:
    """Pick a single message out of a :mod:`wtforms` error dict."""
    for field, messages in errors.items():
        if messages:
            return f'{field}: {messages[0]}'
    return 'Invalid request'
