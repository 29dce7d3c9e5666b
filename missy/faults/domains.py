"""
Missy Faults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults
- MODEL faults (arguments, relations)
- CONVERSION faults
- ENTITY faults
- DRIVER faults
"""

from typing import Any, Optional
from .core import Fault, FaultDomain, Severity


def _name(obj: Any) -> str:
    """Model/relation/type name for metadata: accepts objects or plain strings."""
    if obj is None:
        return "<unknown>"
    if isinstance(obj, str):
        return obj
    return getattr(obj, "name", None) or str(obj)


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigurationFault(Fault):
    """Base class for configuration faults. Raised at definition time."""

    def __init__(
        self,
        reason: str,
        *,
        code: str = "CONFIG_INVALID",
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=reason,
            domain=FaultDomain.CONFIG,
            severity=Severity.FATAL,
            retryable=False,
            metadata={"reason": reason, **(metadata or {})},
        )


class FieldDefinitionFault(ConfigurationFault):
    """A model field definition is malformed."""

    def __init__(self, model: Any, field: str, reason: str, **kwargs):
        super().__init__(
            f"{_name(model)}.{field}: {reason}",
            code="FIELD_DEFINITION_INVALID",
            metadata={"model": _name(model), "field": field, **kwargs.get("metadata", {})},
        )


class UnknownTypeFault(ConfigurationFault):
    """A field refers to a type the schema does not know."""

    def __init__(self, model: Any, field: str, type_name: Any, **kwargs):
        super().__init__(
            f"{_name(model)}.{field}: undefined type {type_name!r}",
            code="UNKNOWN_TYPE",
            metadata={"model": _name(model), "field": field, "type": str(type_name),
                      **kwargs.get("metadata", {})},
        )


class TypeHandlerFault(ConfigurationFault):
    """A type handler factory is invalid or produced an invalid handler."""

    def __init__(self, type_name: str, reason: str, **kwargs):
        super().__init__(
            f"Type handler for {type_name!r} {reason}",
            code="TYPE_HANDLER_INVALID",
            metadata={"type": type_name, **kwargs.get("metadata", {})},
        )


class DriverContractFault(ConfigurationFault):
    """The object bound as a driver does not satisfy the driver contract."""

    def __init__(self, driver: Any, reason: str, **kwargs):
        super().__init__(
            f"Invalid driver {driver!r}: {reason}",
            code="DRIVER_CONTRACT",
            metadata={"driver": repr(driver), **kwargs.get("metadata", {})},
        )


class DriverNotRegisteredFault(ConfigurationFault):
    """A driver was requested by name but nothing is registered under it."""

    def __init__(self, driver_name: str, **kwargs):
        super().__init__(
            f"Driver not registered: {driver_name}",
            code="DRIVER_NOT_REGISTERED",
            metadata={"driver": driver_name, **kwargs.get("metadata", {})},
        )


# ============================================================================
# MODEL Faults
# ============================================================================

class ModelFault(Fault):
    """Invalid arguments given to a model verb. Raised before any driver call."""

    def __init__(
        self,
        model: Any,
        reason: str,
        *,
        code: str = "MODEL_ERROR",
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.model = _name(model)
        super().__init__(
            code=code,
            message=f"{self.model}: {reason}",
            domain=FaultDomain.MODEL,
            metadata={"model": self.model, "reason": reason, **(metadata or {})},
        )


class UnknownFieldFault(ModelFault):
    """Conversion was requested for a field the model does not declare."""

    def __init__(self, model: Any, field: str, **kwargs):
        super().__init__(
            model,
            f"Conversion of an unknown field: {field}",
            code="UNKNOWN_FIELD",
            metadata={"field": field, **kwargs.get("metadata", {})},
        )


class UnknownOperatorFault(ModelFault):
    """A criteria or update document uses an unsupported operator."""

    def __init__(self, model: Any, operator: str, field: Optional[str] = None, **kwargs):
        super().__init__(
            model,
            f"Unknown operator: {operator}",
            code="UNKNOWN_OPERATOR",
            metadata={"operator": operator, "field": field, **kwargs.get("metadata", {})},
        )


class PrimaryKeyFault(ModelFault):
    """A primary key value is empty, incomplete or of the wrong arity."""

    def __init__(self, model: Any, reason: str, pk: Any = None, **kwargs):
        super().__init__(
            model,
            reason,
            code="PRIMARY_KEY_INVALID",
            metadata={"pk": pk, **kwargs.get("metadata", {})},
        )


class RelationFault(ModelFault):
    """Relation misuse or an internal consistency failure of the resolver."""

    def __init__(self, relation: Any, reason: str, *, model: Any = None, **kwargs):
        self.relation = getattr(relation, "prop", None) or str(relation)
        super().__init__(
            model if model is not None else getattr(relation, "model", None),
            f"{self.relation}: {reason}",
            code="RELATION_ERROR",
            metadata={"relation": self.relation, **kwargs.get("metadata", {})},
        )


# ============================================================================
# CONVERSION Faults
# ============================================================================

class TypeConversionFault(Fault):
    """A type handler failed to coerce a value."""

    def __init__(self, type_name: Any, reason: str, value: Any = None, **kwargs):
        self.type = _name(type_name)
        super().__init__(
            code="TYPE_CONVERSION_FAILED",
            message=f"{self.type}: {reason}",
            domain=FaultDomain.CONVERSION,
            metadata={"type": self.type, "reason": reason, "value": repr(value)[:200],
                      **kwargs.get("metadata", {})},
        )


# ============================================================================
# ENTITY Faults
# ============================================================================

class EntityFault(Fault):
    """Base class for expected, caller-recoverable entity conditions."""

    def __init__(self, model: Any, entity: Any, code: str, reason: str):
        self.model = _name(model)
        self.entity = entity
        super().__init__(
            code=code,
            message=f"{self.model}: {reason}",
            domain=FaultDomain.ENTITY,
            metadata={"model": self.model, "entity": entity},
        )


class EntityExistsFault(EntityFault):
    """Insert collided with an existing primary key."""

    def __init__(self, model: Any, entity: Any = None):
        super().__init__(model, entity, "ENTITY_EXISTS", "entity exists")


class EntityNotFoundFault(EntityFault):
    """Update/remove target is missing."""

    def __init__(self, model: Any, entity: Any = None):
        super().__init__(model, entity, "ENTITY_NOT_FOUND", "entity not found")


# Short aliases
EntityExists = EntityExistsFault
EntityNotFound = EntityNotFoundFault


# ============================================================================
# DRIVER Faults
# ============================================================================

class DriverFault(Fault):
    """Opaque storage backend failure, tagged with the backend identity."""

    def __init__(self, driver: Any, reason: str, **kwargs):
        self.driver = str(driver)
        super().__init__(
            code="DRIVER_ERROR",
            message=f"{self.driver}: {reason}",
            domain=FaultDomain.DRIVER,
            metadata={"driver": self.driver, "reason": reason, **kwargs.get("metadata", {})},
        )
