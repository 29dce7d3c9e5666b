"""
Missy Model System — models, query objects and relations.

Usage:
    from missy import Schema

    schema = Schema("memory")
    User = schema.define("User", {"id": int, "login": str})
    Device = schema.define("Device", {"id": int, "uid": int, "title": str})
    User.has_many("devices", Device, {"id": "uid"})

Public API:
    - Model, ModelQuery: The verb pipeline and its chained form
    - FieldDefinition, ModelOptions: Definition-time structures
    - Criteria, Projection, Sort, Update: Normalized query objects
    - QueryContext: Per-call state handed to hooks
    - Converter: Field value conversion
    - HasOne, HasMany: Relations
"""

from .base import HOOK_NAMES, Model, ModelQuery
from .context import QueryContext
from .converter import Converter
from .options import FieldDefinition, ModelOptions
from .query import Criteria, Projection, Sort, Update
from .relations import HasMany, HasOne, Relation, load_related_path

__all__ = [
    # Models
    "Model",
    "ModelQuery",
    "HOOK_NAMES",
    "QueryContext",
    "Converter",
    "FieldDefinition",
    "ModelOptions",
    # Query objects
    "Criteria",
    "Projection",
    "Sort",
    "Update",
    # Relations
    "Relation",
    "HasOne",
    "HasMany",
    "load_related_path",
]
