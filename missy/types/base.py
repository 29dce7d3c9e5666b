"""
Missy Type Handlers — base contract.

A type handler converts field values in three directions:

    norm(value, field)  – normalize a value given by application code
    load(value, field)  – prepare a value loaded from the storage
    save(value, field)  – prepare a value to be sent to the storage

Handlers are instantiated once per schema through a factory
``factory(schema, name)``; a handler class is the usual factory:

    class SmileType(TypeHandler):
        def norm(self, value, field):
            return f"{value} :)"

        def load(self, value, field):
            return value

        def save(self, value, field):
            return f"{value} :)"

    schema.register_type("smile", SmileType)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from ..models.options import FieldDefinition
    from ..schema import Schema

__all__ = ["UNSET", "TypeHandler", "is_missing", "HANDLER_METHODS"]


# ── Sentinel ─────────────────────────────────────────────────────────────────

class _Unset:
    """Sentinel for distinguishing 'not given' from None."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "<UNSET>"

    def __bool__(self):
        return False

UNSET = _Unset()

# Names of the methods every handler must provide
HANDLER_METHODS = ("norm", "load", "save")


def is_missing(value: Any) -> bool:
    """None or UNSET: the value a non-required field coerces to None."""
    return value is None or value is UNSET


class TypeHandler(ABC):
    """
    Base type handler.

    Attributes:
        schema: The owning schema
        name: Type name under which the handler is registered
    """

    def __init__(self, schema: Schema = None, name: str = ""):
        self.schema = schema
        self.name = name

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.name}>"

    @staticmethod
    def optional_missing(value: Any, field: FieldDefinition) -> bool:
        """Whether the value is missing on a non-required field."""
        return not field.required and is_missing(value)

    @abstractmethod
    def norm(self, value: Any, field: FieldDefinition) -> Any:
        """Normalize a value got from application code."""

    @abstractmethod
    def load(self, value: Any, field: FieldDefinition) -> Any:
        """Prepare a value loaded from the storage."""

    @abstractmethod
    def save(self, value: Any, field: FieldDefinition) -> Any:
        """Prepare a value to be saved to the storage."""
