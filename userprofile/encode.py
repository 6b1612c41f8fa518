"""Provides a JSON provider that renders datetimes in ISO-8601 format."""

from datetime import date, datetime
from typing import Any

from flask.json.provider import DefaultJSONProvider


class ISO8601JSONProvider(DefaultJSONProvider):
    """Renders dates and datetimes as ISO-8601 strings rather than RFC 822."""

    @staticmethod
    def default(obj: Any) -> Any:
        if isinstance(obj, (date, datetime)):
            return obj.isoformat()
        return DefaultJSONProvider.default(obj)
