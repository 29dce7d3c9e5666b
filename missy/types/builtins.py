"""
Missy built-in type handlers.

Shared policy: when a field is not required, a missing value (None or
UNSET) coerces to None in every direction. Required fields always coerce
to a value of their type.

    any      – verbatim
    string   – str()
    number   – int or float; unparseable input coerces to None
    boolean  – true/t/1/y/yes → True, anything else → False
    date     – datetime; unparseable input coerces to None
    object   – dict (lists pass too)
    array    – list; scalars are wrapped
    json     – serialized on save, parsed on load
"""

from __future__ import annotations

import datetime
import json
import math

from ..faults import TypeConversionFault
from .base import TypeHandler, UNSET, is_missing

__all__ = [
    "AnyType",
    "StringType",
    "NumberType",
    "BooleanType",
    "DateType",
    "ObjectType",
    "ArrayType",
    "JSONType",
]


class AnyType(TypeHandler):
    """Verbatim values."""

    def norm(self, value, field):
        if self.optional_missing(value, field):
            return None
        return value

    load = norm
    save = norm


class StringType(TypeHandler):
    def norm(self, value, field):
        if self.optional_missing(value, field):
            return None
        if is_missing(value):
            return ""  # not "None"
        if isinstance(value, str):
            return value
        return str(value)

    load = norm
    save = norm


class NumberType(TypeHandler):
    """int stays int, everything else goes through float(); NaN becomes None."""

    def norm(self, value, field):
        if self.optional_missing(value, field):
            return None
        if value is UNSET:
            return None
        if value is None:
            return 0
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return 0
            try:
                return int(text)
            except ValueError:
                pass
            value = text
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if math.isnan(number):
            return None
        return number

    load = norm
    save = norm


class BooleanType(TypeHandler):
    TRUE = frozenset({"true", "t", "1", "y", "yes"})

    def norm(self, value, field):
        if self.optional_missing(value, field):
            return None
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if is_missing(value):
            return False
        return str(value).strip().lower() in self.TRUE

    load = norm
    save = norm


class DateType(TypeHandler):
    """
    Dates as ``datetime.datetime``.

    Accepts datetimes, dates, POSIX timestamps (seconds, UTC) and ISO-8601
    strings. Anything unparseable is an invalid date and coerces to None.
    """

    def norm(self, value, field):
        if self.optional_missing(value, field):
            return None
        if isinstance(value, datetime.datetime):
            return value
        if isinstance(value, datetime.date):
            return datetime.datetime(value.year, value.month, value.day)
        if isinstance(value, bool) or is_missing(value):
            return None
        if isinstance(value, (int, float)):
            try:
                return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)
            except (OverflowError, OSError, ValueError):
                return None
        if isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                return datetime.datetime.fromisoformat(text)
            except ValueError:
                return None
        return None

    load = norm
    save = norm


class ObjectType(TypeHandler):
    def norm(self, value, field):
        is_object = isinstance(value, (dict, list))
        if not field.required and (is_missing(value) or not is_object):
            return None
        if not is_object:
            return {}
        return value

    load = norm
    save = norm


class ArrayType(TypeHandler):
    def norm(self, value, field):
        if self.optional_missing(value, field):
            return None
        if isinstance(value, list):
            return value
        if is_missing(value):
            return []
        if isinstance(value, (tuple, set, frozenset)):
            return list(value)
        return [value]

    load = norm
    save = norm


class JSONType(TypeHandler):
    """Serialized data: the storage holds a JSON string."""

    def norm(self, value, field):
        if self.optional_missing(value, field):
            return None
        return value

    def load(self, value, field):
        if self.optional_missing(value, field):
            return None
        if isinstance(value, (str, bytes, bytearray)):
            try:
                return json.loads(value)
            except ValueError as exc:
                raise TypeConversionFault(self, f"Failed to parse JSON: {exc}", value) from exc
        return value

    def save(self, value, field):
        if self.optional_missing(value, field):
            return None
        if value is UNSET:
            value = None
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise TypeConversionFault(self, f"Failed to serialize JSON: {exc}", value) from exc
