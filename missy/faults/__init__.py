"""
Missy Faults - typed error signals for the mapping layer.

Every error Missy raises is a Fault: a stable code, a domain, a severity
and structured metadata (model, field, operator, entity, driver) instead
of a formatted string only.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain enumeration
- Severity: Severity levels

Domain faults:
- ConfigurationFault and its refinements (definition time)
- ModelFault, RelationFault (argument / consistency errors)
- TypeConversionFault
- EntityExistsFault, EntityNotFoundFault
- DriverFault
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
)

from .domains import (
    ConfigurationFault,
    FieldDefinitionFault,
    UnknownTypeFault,
    TypeHandlerFault,
    DriverContractFault,
    DriverNotRegisteredFault,
    ModelFault,
    UnknownFieldFault,
    UnknownOperatorFault,
    PrimaryKeyFault,
    RelationFault,
    TypeConversionFault,
    EntityFault,
    EntityExistsFault,
    EntityNotFoundFault,
    EntityExists,
    EntityNotFound,
    DriverFault,
)

__all__ = [
    # Core types
    "Fault",
    "FaultDomain",
    "Severity",

    # Configuration
    "ConfigurationFault",
    "FieldDefinitionFault",
    "UnknownTypeFault",
    "TypeHandlerFault",
    "DriverContractFault",
    "DriverNotRegisteredFault",

    # Model
    "ModelFault",
    "UnknownFieldFault",
    "UnknownOperatorFault",
    "PrimaryKeyFault",
    "RelationFault",

    # Conversion
    "TypeConversionFault",

    # Entity
    "EntityFault",
    "EntityExistsFault",
    "EntityNotFoundFault",
    "EntityExists",
    "EntityNotFound",

    # Driver
    "DriverFault",
]
