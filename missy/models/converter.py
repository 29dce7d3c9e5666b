"""
Missy Converter — applies field type handlers across entities.

Directions are the type handler method names:

    norm  – values given by application code
    load  – values coming from the storage
    save  – values going to the storage
"""

from __future__ import annotations

from typing import Any, Dict, TYPE_CHECKING

from ..faults import ModelFault, UnknownFieldFault
from ..types import HANDLER_METHODS, UNSET

if TYPE_CHECKING:
    from .base import Model

__all__ = ["Converter"]


class Converter:
    """Converts field values of one model."""

    def __init__(self, model: Model):
        self.model = model

    def convert_value(
        self,
        field_name: str,
        method: str,
        value: Any = UNSET,
        ignore_unknown: bool = False,
    ) -> Any:
        """
        Convert a single value through the field's type handler.

        A required field given no value (UNSET) gets its default first.

        Raises:
            UnknownFieldFault: the model has no such field and
                ``ignore_unknown`` is false
            TypeConversionFault: the handler failed
        """
        if method not in HANDLER_METHODS:
            raise ValueError(f"Unknown conversion method: {method!r}")

        field = self.model.fields.get(field_name)
        if field is None:
            if ignore_unknown:
                return value
            raise UnknownFieldFault(self.model, field_name)

        if field.required and value is UNSET:
            value = field.get_default()

        return getattr(field.type_handler, method)(value, field)

    def convert_entity(self, method: str, entity: Dict[str, Any]) -> Dict[str, Any]:
        """
        Convert every present key of an entity into a new dict.

        Unknown keys pass through unchanged; the input is never mutated.
        Keys converting to UNSET are left out.
        """
        if not isinstance(entity, dict):
            raise ModelFault(self.model, f"Conversion of a non-object: {type(entity).__name__}")

        result = {}
        for name, value in entity.items():
            value = self.convert_value(name, method, value, ignore_unknown=True)
            if value is not UNSET:
                result[name] = value
        return result
