"""
Missy types — pluggable per-field type handlers.

Public API:
    - TypeHandler: base class for custom handlers
    - UNSET: the "not given" sentinel
    - STD_TYPES: built-in handlers by type name
    - TYPE_SHORTCUTS: Python types accepted as field-definition shorthand
"""

import datetime

from .base import TypeHandler, UNSET, is_missing, HANDLER_METHODS
from .builtins import (
    AnyType,
    StringType,
    NumberType,
    BooleanType,
    DateType,
    ObjectType,
    ArrayType,
    JSONType,
)

# Registered on every schema at construction
STD_TYPES = {
    "any": AnyType,
    "string": StringType,
    "number": NumberType,
    "boolean": BooleanType,
    "date": DateType,
    "object": ObjectType,
    "array": ArrayType,
    "json": JSONType,
}

# Field-definition shorthand → canonical type name
TYPE_SHORTCUTS = {
    None: "any",
    object: "any",
    str: "string",
    int: "number",
    float: "number",
    bool: "boolean",
    datetime.datetime: "date",
    datetime.date: "date",
    dict: "object",
    list: "array",
}

__all__ = [
    "TypeHandler",
    "UNSET",
    "is_missing",
    "HANDLER_METHODS",
    "STD_TYPES",
    "TYPE_SHORTCUTS",
    "AnyType",
    "StringType",
    "NumberType",
    "BooleanType",
    "DateType",
    "ObjectType",
    "ArrayType",
    "JSONType",
]
