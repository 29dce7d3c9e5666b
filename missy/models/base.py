"""
Missy Model — typed entities and the verbs that persist them.

Every verb runs the same pipeline:

    normalize → before_<verb> hook → driver call → import → after_<verb> hook

Entities are plain dicts. Write verbs export (default-fill and save-convert)
entities before the driver sees them; every entity coming back from the
driver is imported (load-converted). Writes mirror their input shape: a
list in gives a list out, a single dict in gives a single dict out.

Usage:
    schema = Schema("memory")
    User = schema.define("User", {
        "id": int,
        "login": {"type": "string", "required": True},
        "ctime": {"type": "date", "required": True, "def": datetime.now},
        "roles": list,
    }, {"pk": "id"})

    await schema.connect()
    await User.insert({"id": 1, "login": "kolypto"})
    user = await User.get(1)
    users = await User.find({"roles": {"$exists": True}}, sort="login")
    admins = await User.with_related("profile").find({"roles": "admin"})
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ..faults import (
    DriverFault,
    EntityNotFoundFault,
    Fault,
    ModelFault,
    RelationFault,
    UnknownTypeFault,
)
from ..signals import MissyHooks
from ..types import UNSET
from .context import QueryContext
from .converter import Converter
from .options import FieldDefinition, ModelOptions
from .query import Criteria, Projection, Sort, Update
from .relations import HasMany, HasOne, Relation, load_related_path

if TYPE_CHECKING:
    from ..schema import Schema

logger = logging.getLogger("missy.models")

__all__ = ["Model", "ModelQuery", "HOOK_NAMES"]


# Hooks every model supports, in pipeline order
HOOK_NAMES = (
    "before_import",
    "after_import",
    "before_export",
    "after_export",
    "before_find_one",
    "after_find_one",
    "before_find",
    "after_find",
    "before_insert",
    "after_insert",
    "before_update",
    "after_update",
    "before_save",
    "after_save",
    "before_remove",
    "after_remove",
    "before_update_query",
    "after_update_query",
    "before_remove_query",
    "after_remove_query",
)


def _non_negative_int(value: Any) -> int:
    """skip/limit normalization: anything non-numeric becomes 0."""
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError, OverflowError):
        return 0


class Model:
    """
    A named entity schema bound to a Schema.

    Models are created through ``Schema.define()``.

    Attributes:
        schema: Owning schema
        name: Model name
        fields: Ordered field definitions
        options: ModelOptions
        converter: Field value converter
        hooks: Pipeline hooks (see HOOK_NAMES)
        relations: Relations by property name
    """

    def __init__(
        self,
        schema: Schema,
        name: str,
        fields: Optional[Dict[str, Any]] = None,
        options: Any = None,
    ):
        self.schema = schema
        self.name = name
        self.options = ModelOptions.prepare(name, options)

        self.fields: Dict[str, FieldDefinition] = {}
        for field_name, spec in (fields or {}).items():
            field = self._prepare_field_definition(field_name, spec)
            if field is not None:
                self.fields[field.name] = field

        self.converter = Converter(self)
        self.hooks = MissyHooks(HOOK_NAMES)
        self.relations: Dict[str, Relation] = {}

    def __repr__(self) -> str:
        return f"<Model {self.name} table={self.options.table!r}>"

    def _prepare_field_definition(self, name: str, spec: Any) -> Optional[FieldDefinition]:
        field = FieldDefinition.parse(name, spec, self)

        # The driver might have its own thoughts
        field = self.schema.driver.prepare_field_definition(self, name, field)
        if field is None:
            return None

        if field.type_handler is None:
            handler = self.schema.types.get(field.type)
            if handler is None:
                raise UnknownTypeFault(self, field.name, field.type)
            field.type_handler = handler

        if field.required is None:
            field.required = self.options.required
        field.model = self
        return field

    @property
    def driver(self):
        return self.schema.driver

    # ── Relations ────────────────────────────────────────────────────

    def has_one(self, prop: str, foreign: Model, fields: Any) -> HasOne:
        """Define a single-entity relation stored in ``prop``."""
        relation = HasOne(self, prop, foreign, fields)
        self.relations[prop] = relation
        return relation

    def has_many(self, prop: str, foreign: Model, fields: Any) -> HasMany:
        """Define a list relation stored in ``prop``."""
        relation = HasMany(self, prop, foreign, fields)
        self.relations[prop] = relation
        return relation

    def get_relation(self, prop: str) -> Relation:
        relation = self.relations.get(prop)
        if relation is None:
            raise RelationFault(prop, "Undefined relation", model=self)
        return relation

    async def load_related(
        self,
        entities: Any,
        prop: str,
        fields: Any = None,
        sort: Any = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Load a relation (``prop`` may be a dotted path) into the entities.

        Returns the same entities, augmented in place.
        """
        batch = entities if isinstance(entities, list) else [entities]
        await load_related_path(self, batch, prop, fields, sort, options)
        return entities

    # ── Chaining ─────────────────────────────────────────────────────

    def query(self) -> ModelQuery:
        return ModelQuery(self)

    def skip(self, n: int) -> ModelQuery:
        return ModelQuery(self).skip(n)

    def limit(self, n: int) -> ModelQuery:
        return ModelQuery(self).limit(n)

    def with_related(
        self,
        prop: str,
        fields: Any = None,
        sort: Any = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> ModelQuery:
        return ModelQuery(self).with_related(prop, fields, sort, options)

    # ── Import / export ──────────────────────────────────────────────

    async def entity_import(self, entity: Dict[str, Any]) -> Dict[str, Any]:
        """Convert an entity loaded from the storage."""
        await self.hooks.invoke_hook("before_import", entity)
        entity = self.converter.convert_entity("load", entity)
        if self.options.entity_prototype is not None:
            entity = self.options.entity_prototype(entity)
        await self.hooks.invoke_hook("after_import", entity)
        return entity

    async def entity_export(self, entity: Dict[str, Any]) -> Dict[str, Any]:
        """Fill defaults and convert an entity to be saved to the storage."""
        if not isinstance(entity, dict):
            raise ModelFault(self, f"Expected an entity (dict), got {type(entity).__name__}")

        await self.hooks.invoke_hook("before_export", entity)
        entity = self.converter.convert_entity("save", self._fill_defaults(entity))
        await self.hooks.invoke_hook("after_export", entity)
        return entity

    def _fill_defaults(self, entity: Dict[str, Any]) -> Dict[str, Any]:
        """Copy with defaults for absent fields, and for None on required ones."""
        entity = dict(entity)
        for name, field in self.fields.items():
            if not field.has_default:
                continue
            value = entity.get(name, UNSET)
            if value is UNSET or (value is None and field.required):
                entity[name] = field.get_default()
        return entity

    async def _import_all(self, entities: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return list(await asyncio.gather(*(self.entity_import(e) for e in entities)))

    async def _export_all(self, entities: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return list(await asyncio.gather(*(self.entity_export(e) for e in entities)))

    # ── Driver ───────────────────────────────────────────────────────

    async def _call_driver(self, method: str, *args: Any) -> Any:
        """Call a driver method; non-fault errors are wrapped into DriverFault."""
        await self.schema.ensure_connected()
        driver = self.schema.driver
        try:
            return await getattr(driver, method)(self, *args)
        except Fault:
            raise
        except Exception as exc:
            raise DriverFault(driver, f"{self.name}.{method}: {exc}") from exc

    # ── Queries ──────────────────────────────────────────────────────

    async def get(self, pk: Any, fields: Any = None) -> Optional[Dict[str, Any]]:
        """
        Get an entity by primary key: a scalar, a list matching the key
        fields, or a dict. Returns None when not found.
        """
        return await self.find_one(Criteria.from_pk(self, pk), fields)

    async def find_one(
        self,
        criteria: Any = None,
        fields: Any = None,
        sort: Any = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """The first matching entity, or None."""
        options = dict(options or {})
        options["skip"] = _non_negative_int(options.get("skip", 0))
        options["limit"] = _non_negative_int(options.get("limit", 0))

        ctx = QueryContext(
            self,
            "find_one",
            criteria=Criteria(self, criteria),
            fields=Projection(fields),
            sort=Sort(sort),
            options=options,
        )

        await self.hooks.invoke_hook("before_find_one", None, ctx)
        entity = await self._call_driver("find_one", ctx.criteria, ctx.fields, ctx.sort, ctx.options)
        if entity is not None:
            entity = await self.entity_import(entity)
        ctx.entities = [] if entity is None else [entity]
        await self.hooks.invoke_hook("after_find_one", entity, ctx)
        return entity

    async def find(
        self,
        criteria: Any = None,
        fields: Any = None,
        sort: Any = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        All matching entities.

        Options:
            skip: Number of entities to skip
            limit: Maximum number of entities, 0 for no limit
        """
        options = dict(options or {})
        options["skip"] = _non_negative_int(options.get("skip", 0))
        options["limit"] = _non_negative_int(options.get("limit", 0))

        ctx = QueryContext(
            self,
            "find",
            criteria=Criteria(self, criteria),
            fields=Projection(fields),
            sort=Sort(sort),
            options=options,
        )

        await self.hooks.invoke_hook("before_find", None, ctx)
        rows = await self._call_driver("find", ctx.criteria, ctx.fields, ctx.sort, ctx.options)
        entities = await self._import_all(rows)
        ctx.entities = entities
        await self.hooks.invoke_hook("after_find", entities, ctx)
        logger.debug(f"{self.name}.find: {len(entities)} entities")
        return entities

    async def count(self, criteria: Any = None, options: Optional[Dict[str, Any]] = None) -> int:
        """Number of matching entities."""
        return int(await self._call_driver("count", Criteria(self, criteria), dict(options or {})))

    # ── Entity writes ────────────────────────────────────────────────

    async def _write(self, verb: str, entities: Any, options: Optional[Dict[str, Any]]) -> Any:
        many = isinstance(entities, (list, tuple))
        batch = list(entities) if many else [entities]
        for entity in batch:
            if not isinstance(entity, dict):
                raise ModelFault(self, f"{verb}: expected an entity (dict), got {type(entity).__name__}")

        ctx = QueryContext(self, verb, options=dict(options or {}))
        exported = await self._export_all(batch)
        ctx.entities = exported

        await self.hooks.invoke_hook(f"before_{verb}", exported, ctx)
        rows = await self._call_driver(verb, exported, ctx.options)
        entities = await self._import_all(rows)
        ctx.entities = entities
        await self.hooks.invoke_hook(f"after_{verb}", entities, ctx)
        logger.debug(f"{self.name}.{verb}: {len(entities)} entities")

        return entities if many else entities[0]

    async def insert(self, entities: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        """Insert new entities. Raises EntityExistsFault on a key collision."""
        return await self._write("insert", entities, options)

    async def update(self, entities: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        """Replace existing entities. Raises EntityNotFoundFault on a missing key."""
        return await self._write("update", entities, options)

    async def save(self, entities: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        """Insert or replace entities."""
        return await self._write("save", entities, options)

    async def remove(self, entities: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        """
        Remove entities by primary key; returns them as they were stored.
        Raises EntityNotFoundFault on a missing key.
        """
        return await self._write("remove", entities, options)

    # ── Query writes ─────────────────────────────────────────────────

    async def update_query(
        self,
        criteria: Any,
        update: Any,
        options: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Update entities matching the criteria.

        Options:
            upsert: insert an entity built from the criteria and the update
                when nothing matches (default False)
            multi: update every match and return a list; otherwise update
                the first match and return it (default False)

        Raises:
            EntityNotFoundFault: nothing matched, no upsert, multi is off
        """
        options = {"upsert": False, "multi": False, **(options or {})}
        ctx = QueryContext(
            self,
            "update_query",
            criteria=Criteria(self, criteria),
            update=Update(self, update),
            options=options,
        )

        await self.hooks.invoke_hook("before_update_query", None, ctx)
        rows = await self._call_driver("update_query", ctx.criteria, ctx.update, ctx.options)
        if not rows and not options["multi"]:
            raise EntityNotFoundFault(self, ctx.criteria.criteria)
        entities = await self._import_all(rows)
        ctx.entities = entities
        await self.hooks.invoke_hook("after_update_query", entities, ctx)

        if options["multi"]:
            return entities
        return entities[0]

    async def remove_query(
        self,
        criteria: Any = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Remove entities matching the criteria.

        Options:
            multi: remove every match and return a list (default True);
                otherwise remove the first match and return it, or None
        """
        options = {"multi": True, **(options or {})}
        ctx = QueryContext(
            self,
            "remove_query",
            criteria=Criteria(self, criteria),
            options=options,
        )

        await self.hooks.invoke_hook("before_remove_query", None, ctx)
        rows = await self._call_driver("remove_query", ctx.criteria, ctx.options)
        entities = await self._import_all(rows)
        ctx.entities = entities
        await self.hooks.invoke_hook("after_remove_query", entities, ctx)

        if options["multi"]:
            return entities
        return entities[0] if entities else None


class ModelQuery:
    """
    Chained query options: ``skip``, ``limit`` and eager-loaded relations.

    Every chain method returns a new ModelQuery; the terminal verbs mirror
    Model's. With relations attached, ``find``/``find_one``/``get`` load
    them into the results, write verbs also persist the related entities
    carried by the hosts, and ``remove`` removes the related rows too.

    Usage:
        users = await User.skip(10).limit(10).find()
        user = await User.with_related("profile").with_related("devices.messages").get(1)
        await User.with_related("profile").save({"id": 1, "profile": {"age": 20}})
    """

    def __init__(self, model: Model):
        self.model = model
        self._options: Dict[str, Any] = {}
        self._related: List[tuple] = []

    def _clone(self) -> ModelQuery:
        c = ModelQuery(self.model)
        c._options = self._options.copy()
        c._related = self._related[:]
        return c

    def __repr__(self) -> str:
        related = [path for path, *_ in self._related]
        return f"<ModelQuery {self.model.name} options={self._options} related={related}>"

    # ── Chain methods ────────────────────────────────────────────────

    def skip(self, n: int) -> ModelQuery:
        c = self._clone()
        c._options["skip"] = n
        return c

    def limit(self, n: int) -> ModelQuery:
        c = self._clone()
        c._options["limit"] = n
        return c

    def with_related(
        self,
        prop: str,
        fields: Any = None,
        sort: Any = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> ModelQuery:
        """
        Eager-load a relation; dotted paths load relations of related
        entities. Projection, sort and options apply to the last segment.
        """
        # Fail early on undefined relations
        model = self.model
        for segment in prop.split("."):
            model = model.get_relation(segment).foreign

        c = self._clone()
        c._related.append((prop, fields, sort, options))
        return c

    def _merge_options(self, options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {**self._options, **(options or {})}

    async def _load_related(self, entities: List[Dict[str, Any]]) -> None:
        loaded: set = set()
        # Parents first: reloading a shorter path would drop nested results
        related = sorted(self._related, key=lambda item: item[0].count("."))
        for path, fields, sort, options in related:
            await load_related_path(self.model, entities, path, fields, sort, options, loaded)

    def _direct_relations(self) -> List[Relation]:
        relations = []
        for path, *_ in self._related:
            if "." in path:
                raise RelationFault(path, "Nested relations cannot be written", model=self.model)
            relations.append(self.model.get_relation(path))
        return relations

    # ── Queries ──────────────────────────────────────────────────────

    async def get(self, pk: Any, fields: Any = None) -> Optional[Dict[str, Any]]:
        return await self.find_one(Criteria.from_pk(self.model, pk), fields)

    async def find_one(self, criteria=None, fields=None, sort=None, options=None):
        entity = await self.model.find_one(criteria, fields, sort, self._merge_options(options))
        if entity is not None and self._related:
            await self._load_related([entity])
        return entity

    async def find(self, criteria=None, fields=None, sort=None, options=None):
        entities = await self.model.find(criteria, fields, sort, self._merge_options(options))
        if entities and self._related:
            await self._load_related(entities)
        return entities

    async def count(self, criteria=None, options=None):
        return await self.model.count(criteria, self._merge_options(options))

    # ── Writes ───────────────────────────────────────────────────────

    def _split(self, entities: Any, relations: List[Relation]):
        """Separate relation properties from hosts."""
        many = isinstance(entities, (list, tuple))
        batch = list(entities) if many else [entities]
        hosts, values = [], []
        for entity in batch:
            if not isinstance(entity, dict):
                raise ModelFault(self.model, f"Expected an entity (dict), got {type(entity).__name__}")
            host = dict(entity)
            values.append({r.prop: host.pop(r.prop, UNSET) for r in relations})
            hosts.append(host)
        return many, hosts, values

    async def _write(self, verb: str, entities: Any, options: Optional[Dict[str, Any]]) -> Any:
        relations = self._direct_relations()
        many, hosts, values = self._split(entities, relations)

        saved = await getattr(self.model, verb)(hosts, options)
        for relation in relations:
            await relation.save_related(saved, [v[relation.prop] for v in values])

        return saved if many else saved[0]

    async def insert(self, entities: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        return await self._write("insert", entities, options)

    async def update(self, entities: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        return await self._write("update", entities, options)

    async def save(self, entities: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        return await self._write("save", entities, options)

    async def remove(self, entities: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        relations = self._direct_relations()
        many, hosts, _ = self._split(entities, relations)

        removed = await self.model.remove(hosts, options)
        for relation in relations:
            await relation.remove_related(removed)

        return removed if many else removed[0]

    async def update_query(self, criteria, update, options=None):
        return await self.model.update_query(criteria, update, options)

    async def remove_query(self, criteria=None, options=None):
        return await self.model.remove_query(criteria, options)
