"""
Missy Model Options — field definitions and model-level options.

A field can be given in several forms, all resolved into a FieldDefinition
at model-definition time:

    id=int                                  # Python type shorthand
    login="string"                          # type name
    ctime={"type": "date", "required": True, "def": datetime.now}
    data=FieldDefinition("json")
"""

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from ..faults import ConfigurationFault, FieldDefinitionFault
from ..types import TYPE_SHORTCUTS, UNSET

if TYPE_CHECKING:
    from ..types import TypeHandler
    from .base import Model


__all__ = ["FieldDefinition", "ModelOptions"]


class FieldDefinition:
    """
    A model field.

    Attributes:
        name: Field name
        type: Type name in the schema type registry
        required: Whether the field is required; None inherits the model default
        default: Static value or zero-argument callable; UNSET when none
        type_handler: Resolved type handler
        model: Owning model
        extra: Unrecognized definition keys, kept for drivers
    """

    __slots__ = (
        "name",
        "type",
        "required",
        "default",
        "type_handler",
        "model",
        "extra",
    )

    def __init__(
        self,
        type: Optional[str] = None,
        *,
        required: Optional[bool] = None,
        default: Any = UNSET,
        name: str = "",
        type_handler: Optional[TypeHandler] = None,
        model: Optional[Model] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        self.name = name
        self.type = type
        self.required = required
        self.default = default
        self.type_handler = type_handler
        self.model = model
        self.extra = dict(extra or {})

    @classmethod
    def parse(cls, name: str, spec: Any, model: Any = None) -> "FieldDefinition":
        """Resolve any accepted field form into a fresh FieldDefinition."""
        if isinstance(spec, FieldDefinition):
            field = copy.copy(spec)
            field.extra = dict(spec.extra)
        elif spec is None or isinstance(spec, type):
            if spec not in TYPE_SHORTCUTS:
                raise FieldDefinitionFault(model, name, f"unsupported shorthand type {spec!r}")
            field = cls(TYPE_SHORTCUTS[spec])
        elif isinstance(spec, str):
            field = cls(spec)
        elif isinstance(spec, dict):
            spec = dict(spec)
            if "type" not in spec:
                raise FieldDefinitionFault(model, name, "incorrect definition: missing type")
            type_name = spec.pop("type")
            if type_name is None or isinstance(type_name, type):
                type_name = TYPE_SHORTCUTS.get(type_name, type_name)
            required = spec.pop("required", None)
            default = spec.pop("def", UNSET)
            if "default" in spec:
                default = spec.pop("default")
            field = cls(type_name, required=required, default=default, extra=spec)
        else:
            raise FieldDefinitionFault(model, name, f"incorrect definition {spec!r}")

        if not isinstance(field.type, str) or not field.type:
            raise FieldDefinitionFault(model, name, "incorrect definition: missing type")
        field.name = name
        return field

    @property
    def has_default(self) -> bool:
        return self.default is not UNSET

    def get_default(self) -> Any:
        """Default value: callables are invoked, static values are copied."""
        if self.default is UNSET:
            return UNSET
        if callable(self.default):
            return self.default()
        return copy.deepcopy(self.default)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "name": self.name,
            "type": self.type,
            "required": self.required,
        }
        if self.has_default:
            result["default"] = self.default
        result.update(self.extra)
        return result

    def __repr__(self) -> str:
        return (
            f"<FieldDefinition {self.name}: {self.type}"
            f"{' required' if self.required else ''}>"
        )


class ModelOptions:
    """
    Model options.

    Attributes:
        table: Table (collection) name; defaults to the lowercased model
            name plus "s"
        pk: Primary key field names
        required: Default ``required`` for fields that do not set it
        entity_prototype: Callable wrapping every loaded entity,
            usually a dict subclass carrying methods
    """

    __slots__ = ("table", "pk", "required", "entity_prototype")

    def __init__(
        self,
        table: str,
        pk: List[str],
        required: bool = False,
        entity_prototype: Optional[Callable[[dict], Any]] = None,
    ):
        self.table = table
        self.pk = pk
        self.required = required
        self.entity_prototype = entity_prototype

    @classmethod
    def prepare(cls, model_name: str, options: Any = None) -> "ModelOptions":
        """Accept None, a dict or a ModelOptions instance and fill defaults."""
        if isinstance(options, cls):
            options = options.to_dict()
        if options is None:
            options = {}
        if not isinstance(options, dict):
            raise ConfigurationFault(
                f"{model_name}: model options must be a dict, got {type(options).__name__}"
            )

        unknown = sorted(set(options) - set(cls.__slots__))
        if unknown:
            raise ConfigurationFault(
                f"{model_name}: unknown model options: {', '.join(unknown)}",
                metadata={"model": model_name, "unknown": unknown},
            )

        pk = options.get("pk", "id")
        pk = [pk] if isinstance(pk, str) else list(pk)
        if not pk:
            raise ConfigurationFault(f"{model_name}: empty primary key")

        prototype = options.get("entity_prototype")
        if prototype is not None and not callable(prototype):
            raise ConfigurationFault(f"{model_name}: entity_prototype must be callable")

        return cls(
            table=options.get("table") or model_name.lower() + "s",
            pk=pk,
            required=bool(options.get("required", False)),
            entity_prototype=prototype,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "pk": list(self.pk),
            "required": self.required,
            "entity_prototype": self.entity_prototype,
        }

    def __repr__(self) -> str:
        return f"<ModelOptions table={self.table!r} pk={self.pk!r}>"
