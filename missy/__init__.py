"""
Missy - async object-document mapper with pluggable storage drivers

- Types: per-field norm/load/save coercion
- Models: hook-wrapped CRUD verbs over normalized query objects
- Relations: batched hasOne/hasMany loading and graph saving
- Drivers: a storage contract plus an in-memory reference driver
- Faults: structured errors with fault domains
"""

__version__ = "0.1.0"

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    ConfigurationFault,
    ModelFault,
    RelationFault,
    TypeConversionFault,
    EntityExistsFault,
    EntityNotFoundFault,
    EntityExists,
    EntityNotFound,
    DriverFault,
)
from .types import TypeHandler, UNSET, STD_TYPES
from .config import SchemaSettings, ConfigLoader
from .signals import EventEmitter, MissyHooks
from .drivers import Driver, MemoryDriver, register_driver, create_driver
from .models import (
    Model,
    ModelQuery,
    FieldDefinition,
    ModelOptions,
    Criteria,
    Projection,
    Sort,
    Update,
    QueryContext,
    HasOne,
    HasMany,
)
from .schema import Schema

__all__ = [
    "__version__",
    # Schema
    "Schema",
    "SchemaSettings",
    "ConfigLoader",
    # Models
    "Model",
    "ModelQuery",
    "FieldDefinition",
    "ModelOptions",
    "Criteria",
    "Projection",
    "Sort",
    "Update",
    "QueryContext",
    "HasOne",
    "HasMany",
    # Types
    "TypeHandler",
    "UNSET",
    "STD_TYPES",
    # Signals
    "EventEmitter",
    "MissyHooks",
    # Drivers
    "Driver",
    "MemoryDriver",
    "register_driver",
    "create_driver",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigurationFault",
    "ModelFault",
    "RelationFault",
    "TypeConversionFault",
    "EntityExistsFault",
    "EntityNotFoundFault",
    "EntityExists",
    "EntityNotFound",
    "DriverFault",
]
