"""
Missy Relations — hasOne / hasMany between models.

A relation joins host entities to foreign entities on field equality and
stores the related entities in a host property:

    User.has_one("profile", Profile, "id")                  # same field name
    User.has_many("devices", Device, {"id": "uid"})         # local -> foreign
    Device.has_many("messages", Message, {"type": "device_type",
                                          "sn": "device_sn"})  # multi-column

Loading is batched: one ``find()`` on the foreign model per call, with an
``$in`` condition per foreign field, then the rows are distributed to the
hosts through a lookup table keyed by the join values.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple, TYPE_CHECKING

from ..faults import RelationFault
from ..types import UNSET
from .query import Projection

if TYPE_CHECKING:
    from .base import Model

logger = logging.getLogger("missy.models.relations")

__all__ = ["Relation", "HasOne", "HasMany", "load_related_path"]


def _hashable(value: Any) -> Any:
    try:
        hash(value)
    except TypeError:
        return repr(value)
    return value


class Relation:
    """
    Base relation.

    Attributes:
        model: Host model
        prop: Host property holding the related entities
        foreign: Foreign model
        fields: Join mapping, local field -> foreign field
        array_relation: Whether the property holds a list
    """

    array_relation = False

    def __init__(self, model: Model, prop: str, foreign: Model, fields: Any):
        self.model = model
        self.prop = prop
        self.foreign = foreign
        self.fields: Dict[str, str] = self._prepare_fields(fields)

    @staticmethod
    def _prepare_fields(fields: Any) -> Dict[str, str]:
        if isinstance(fields, str):
            return {fields: fields}
        if isinstance(fields, (list, tuple)):
            return {name: name for name in fields}
        if isinstance(fields, dict) and fields:
            return dict(fields)
        raise ValueError(f"Invalid relation fields: {fields!r}")

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} {self.model.name}.{self.prop} -> "
            f"{self.foreign.name} {self.fields}>"
        )

    # ── Helpers ──────────────────────────────────────────────────────

    @property
    def local_fields(self) -> List[str]:
        return list(self.fields)

    @property
    def foreign_fields(self) -> List[str]:
        return list(self.fields.values())

    def _norm(self, foreign_field: str, value: Any) -> Any:
        return self.foreign.converter.convert_value(
            foreign_field, "norm", value, ignore_unknown=True
        )

    def _host_values(self, entity: Dict[str, Any]) -> Optional[List[Any]]:
        """Normalized join values of a host entity, or None if any is missing."""
        values = []
        for local, foreign in self.fields.items():
            value = entity.get(local)
            if value is None:
                return None
            values.append(self._norm(foreign, value))
        return values

    def _related_key(self, entity: Dict[str, Any]) -> Tuple:
        return tuple(
            _hashable(self._norm(foreign, entity.get(foreign)))
            for foreign in self.foreign_fields
        )

    def _assign(self, host: Dict[str, Any], related: Dict[str, Any]) -> None:
        if self.array_relation:
            host[self.prop].append(related)
        else:
            host[self.prop] = related

    def _empty(self) -> Any:
        return [] if self.array_relation else None

    def collect(self, entities: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Related entities currently stored on the hosts, flattened."""
        result = []
        for entity in entities:
            value = entity.get(self.prop)
            if value is None:
                continue
            if self.array_relation:
                result.extend(value)
            else:
                result.append(value)
        return result

    def _gather(self, entities: Iterable[Dict[str, Any]]):
        """
        Build the foreign ``$in`` values and the host lookup.

        Returns:
            (in_values, seen, lookup): in_values maps foreign field ->
            distinct values, seen holds their hashable forms, lookup maps a
            join key -> hosts sharing it
        """
        in_values: Dict[str, List[Any]] = {foreign: [] for foreign in self.foreign_fields}
        seen: Dict[str, set] = {foreign: set() for foreign in self.foreign_fields}
        lookup: Dict[Tuple, List[Dict[str, Any]]] = {}

        for entity in entities:
            values = self._host_values(entity)
            if values is None:
                continue
            key = tuple(_hashable(value) for value in values)
            lookup.setdefault(key, []).append(entity)
            for foreign, value, hashed in zip(self.foreign_fields, values, key):
                if hashed not in seen[foreign]:
                    seen[foreign].add(hashed)
                    in_values[foreign].append(value)
        return in_values, seen, lookup

    # ── Loading ──────────────────────────────────────────────────────

    async def load_related(
        self,
        entities: List[Dict[str, Any]],
        fields: Any = None,
        sort: Any = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Load related entities into ``prop`` of every host entity.

        hasMany hosts without matches get ``[]``, hasOne hosts get None.
        The projection, if any, must keep every foreign join field.

        Raises:
            RelationFault: the projection drops a join field, or a related
                row cannot be matched to a host
        """
        if fields is not None:
            fields = Projection(fields)
            if not fields.includes_fields(self.foreign_fields):
                raise RelationFault(self, "Projection drops foreign keys")

        for entity in entities:
            entity[self.prop] = self._empty()

        in_values, seen, lookup = self._gather(entities)
        if not lookup:
            return entities

        criteria = {foreign: {"$in": values} for foreign, values in in_values.items()}
        related = await self.foreign.find(criteria, fields, sort, options)
        logger.debug(
            f"{self.model.name}.{self.prop}: {len(related)} related for "
            f"{len(lookup)} keys"
        )

        for row in related:
            key = self._related_key(row)
            hosts = lookup.get(key)
            if hosts is None:
                # Multi-column $in over-fetch: every value requested, tuple not
                if all(value in seen[foreign] for foreign, value in zip(self.foreign_fields, key)):
                    continue
                raise RelationFault(self, f"Failed to locate a host entity for {key!r}")
            for host in hosts:
                self._assign(host, row)

        return entities

    # ── Saving ───────────────────────────────────────────────────────

    async def save_related(
        self,
        hosts: List[Dict[str, Any]],
        values: List[Any],
    ) -> None:
        """
        Persist the related entities given for each host.

        ``values[i]`` belongs to ``hosts[i]``: an entity or None (hasOne),
        a list (hasMany), or UNSET when the host did not carry the property
        (its related rows are left alone). Join values are copied from the
        host into every related entity, related rows of these hosts missing
        from the new set are removed, then the new set is saved.
        """
        owners = []
        rows: List[Dict[str, Any]] = []
        for host, value in zip(hosts, values):
            if value is UNSET:
                continue
            if self._host_values(host) is None:
                raise RelationFault(self, "Host entity lacks join fields")
            owners.append(host)

            if self.array_relation:
                related = list(value or [])
            else:
                related = [] if value is None else [value]

            for entity in related:
                if not isinstance(entity, dict):
                    raise RelationFault(self, f"Related entity must be an object, got {entity!r}")
                entity = dict(entity)
                for local, foreign in self.fields.items():
                    entity[foreign] = host[local]
                rows.append(entity)

        if not owners:
            return

        await self._remove_stale(owners, rows)
        if rows:
            await self.foreign.save(rows)
        logger.debug(f"{self.model.name}.{self.prop}: saved {len(rows)} related")

    async def _remove_stale(self, owners: List[Dict[str, Any]], rows: List[Dict[str, Any]]) -> None:
        pk = self.foreign.options.pk
        in_values, _, lookup = self._gather(owners)

        if len(self.fields) == 1 and len(pk) == 1:
            (foreign_field,) = self.foreign_fields
            keep = [row[pk[0]] for row in rows if row.get(pk[0]) is not None]
            criteria = {foreign_field: {"$in": in_values[foreign_field]}}
            criteria.setdefault(pk[0], {})["$nin"] = keep
            await self.foreign.remove_query(criteria, {"multi": True})
            return

        keep = {tuple(_hashable(row.get(name)) for name in pk) for row in rows}
        criteria = {foreign: {"$in": values} for foreign, values in in_values.items()}
        existing = await self.foreign.find(criteria)
        stale = [
            row for row in existing
            if self._related_key(row) in lookup
            and tuple(_hashable(row.get(name)) for name in pk) not in keep
        ]
        if stale:
            await self.foreign.remove(stale)

    # ── Removing ─────────────────────────────────────────────────────

    async def remove_related(self, hosts: List[Dict[str, Any]]) -> None:
        """Remove every related row of the hosts."""
        in_values, _, lookup = self._gather(hosts)
        if not lookup:
            return

        if len(self.fields) == 1:
            (foreign_field,) = self.foreign_fields
            await self.foreign.remove_query(
                {foreign_field: {"$in": in_values[foreign_field]}}, {"multi": True}
            )
            return

        criteria = {foreign: {"$in": values} for foreign, values in in_values.items()}
        existing = await self.foreign.find(criteria)
        related = [row for row in existing if self._related_key(row) in lookup]
        if related:
            await self.foreign.remove(related)
        logger.debug(f"{self.model.name}.{self.prop}: removed {len(related)} related")


class HasOne(Relation):
    """Host property holds a single related entity, or None."""

    array_relation = False


class HasMany(Relation):
    """Host property holds a list of related entities."""

    array_relation = True


async def load_related_path(
    model: Model,
    entities: List[Dict[str, Any]],
    path: str,
    fields: Any = None,
    sort: Any = None,
    options: Optional[Dict[str, Any]] = None,
    loaded: Optional[set] = None,
) -> List[Dict[str, Any]]:
    """
    Load a possibly dotted relation path, e.g. ``"devices.messages.device"``.

    Every segment is loaded against the entities the previous segment
    produced. Projection, sort and options apply to the last segment only.
    Intermediate segments already present in ``loaded`` (paths loaded
    earlier in the same eager-loading run) are reused, not reloaded.
    """
    loaded = loaded if loaded is not None else set()
    segments = path.split(".")
    current_model, current = model, entities

    for depth, prop in enumerate(segments):
        relation = current_model.get_relation(prop)
        key = ".".join(segments[: depth + 1])
        if depth == len(segments) - 1:
            await relation.load_related(current, fields, sort, options)
        elif key not in loaded:
            await relation.load_related(current)
        loaded.add(key)
        current = relation.collect(current)
        current_model = relation.foreign

    return entities
