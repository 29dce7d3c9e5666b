"""
Missy Memory Driver — in-process reference storage.

Tables are plain lists of dicts keyed by the model table name. Query
semantics come straight from the query objects (Criteria.entity_match,
Sort.entities_sort, Projection.entity_apply, Update.entity_update), so
this driver doubles as the reference for what other drivers must do.

Values are deep-copied on the way in and out: callers never share state
with the storage.

Not thread-safe; use from a single event loop.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ..faults import EntityExistsFault, EntityNotFoundFault
from ..types import UNSET
from .base import Driver

if TYPE_CHECKING:
    from ..models.base import Model
    from ..models.query import Criteria, Projection, Sort, Update

logger = logging.getLogger("missy.drivers.memory")

__all__ = ["MemoryDriver"]


class MemoryDriver(Driver):
    """
    In-memory driver.

    Args:
        url: Ignored apart from identification ("memory", "memory://test")
    """

    name = "memory"

    def __init__(self, url: str = "memory", **options):
        super().__init__()
        self.url = url
        self.options = options
        self._tables: Dict[str, List[Dict[str, Any]]] = {}

    # ── Storage ──────────────────────────────────────────────────────

    def get_table(self, model: Model) -> List[Dict[str, Any]]:
        """The live storage list of a model."""
        return self._tables.setdefault(model.options.table, [])

    @staticmethod
    def _pk(model: Model, entity: Dict[str, Any]) -> tuple:
        return tuple(entity.get(name, UNSET) for name in model.options.pk)

    def _find_index(self, model: Model, entity: Dict[str, Any]) -> Optional[int]:
        pk = self._pk(model, entity)
        for i, stored in enumerate(self.get_table(model)):
            if self._pk(model, stored) == pk:
                return i
        return None

    def _select(self, model: Model, criteria: Criteria) -> List[Dict[str, Any]]:
        return [entity for entity in self.get_table(model) if criteria.entity_match(entity)]

    # ── Connection ───────────────────────────────────────────────────

    async def connect(self) -> Any:
        self.client = self._tables
        self.connected = True
        logger.info(f"Memory driver connected ({self.url})")
        await self.emit("connect", self)
        return self.client

    async def disconnect(self) -> None:
        self.client = None
        self.connected = False
        logger.info(f"Memory driver disconnected ({self.url})")
        await self.emit("disconnect", self)

    # ── Queries ──────────────────────────────────────────────────────

    async def find_one(self, model, criteria, fields, sort, options):
        entities = await self.find(model, criteria, fields, sort, dict(options, limit=1))
        return entities[0] if entities else None

    async def find(self, model, criteria, fields, sort, options):
        entities = sort.entities_sort(self._select(model, criteria))

        skip = options.get("skip") or 0
        limit = options.get("limit") or 0
        if skip:
            entities = entities[skip:]
        if limit:
            entities = entities[:limit]

        logger.debug(f"{model.name}.find: {len(entities)} rows")
        return [copy.deepcopy(fields.entity_apply(model, entity)) for entity in entities]

    async def count(self, model, criteria, options):
        return len(self._select(model, criteria))

    # ── Entity writes ────────────────────────────────────────────────

    async def insert(self, model, entities, options):
        table = self.get_table(model)
        seen = set()
        for entity in entities:
            pk = self._pk(model, entity)
            if pk in seen or self._find_index(model, entity) is not None:
                raise EntityExistsFault(model, entity)
            seen.add(pk)

        for entity in entities:
            table.append(copy.deepcopy(entity))
        logger.debug(f"{model.name}.insert: {len(entities)} rows")
        return copy.deepcopy(entities)

    async def update(self, model, entities, options):
        table = self.get_table(model)
        indexes = []
        for entity in entities:
            index = self._find_index(model, entity)
            if index is None:
                raise EntityNotFoundFault(model, entity)
            indexes.append(index)

        for index, entity in zip(indexes, entities):
            table[index] = copy.deepcopy(entity)
        logger.debug(f"{model.name}.update: {len(entities)} rows")
        return copy.deepcopy(entities)

    async def save(self, model, entities, options):
        table = self.get_table(model)
        for entity in entities:
            index = self._find_index(model, entity)
            if index is None:
                table.append(copy.deepcopy(entity))
            else:
                table[index] = copy.deepcopy(entity)
        logger.debug(f"{model.name}.save: {len(entities)} rows")
        return copy.deepcopy(entities)

    async def remove(self, model, entities, options):
        table = self.get_table(model)
        for entity in entities:
            if self._find_index(model, entity) is None:
                raise EntityNotFoundFault(model, entity)

        removed = []
        for entity in entities:
            index = self._find_index(model, entity)
            if index is not None:
                removed.append(table.pop(index))
        logger.debug(f"{model.name}.remove: {len(removed)} rows")
        return removed

    # ── Query writes ─────────────────────────────────────────────────

    async def update_query(self, model, criteria, update, options):
        matches = self._select(model, criteria)
        if not options.get("multi"):
            matches = matches[:1]

        if not matches:
            if not options.get("upsert"):
                return []
            entity = update.entity_insert(criteria)
            self.get_table(model).append(entity)
            logger.debug(f"{model.name}.update_query: upserted")
            return [copy.deepcopy(entity)]

        for entity in matches:
            update.entity_update(entity)
        logger.debug(f"{model.name}.update_query: {len(matches)} rows")
        return copy.deepcopy(matches)

    async def remove_query(self, model, criteria, options):
        matches = self._select(model, criteria)
        if not options.get("multi", True):
            matches = matches[:1]

        removed_ids = {id(entity) for entity in matches}
        table = self.get_table(model)
        table[:] = [entity for entity in table if id(entity) not in removed_ids]
        logger.debug(f"{model.name}.remove_query: {len(matches)} rows")
        return matches
