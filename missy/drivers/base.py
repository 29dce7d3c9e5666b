"""
Missy Driver — base storage driver interface.

Every storage backend implements this interface. A Schema binds exactly
one driver and delegates all storage work to it, always passing the
normalized query objects (Criteria, Projection, Sort, Update) and entities
already converted to storage values.

Drivers emit two events:
    connect     – after a connection is established
    disconnect  – after the connection is lost or closed

Entity existence conditions are signalled with EntityExistsFault and
EntityNotFoundFault; anything else a driver raises is wrapped into
DriverFault by the model layer.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ..signals import EventEmitter

if TYPE_CHECKING:
    from ..models.base import Model
    from ..models.options import FieldDefinition
    from ..models.query import Criteria, Projection, Sort, Update
    from ..schema import Schema

logger = logging.getLogger("missy.drivers")

__all__ = ["Driver"]


class Driver(EventEmitter, ABC):
    """
    Abstract storage driver.

    Attributes:
        name: Driver identity, used in DriverFault
        client: Backend client handle, None while disconnected
        connected: Connection state
        schema: The bound schema
    """

    name: str = "base"

    def __init__(self):
        super().__init__()
        self.client: Any = None
        self.connected: bool = False
        self.schema: Optional[Schema] = None

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        state = "connected" if self.connected else "disconnected"
        return f"<{self.__class__.__name__} {state}>"

    # ── Binding ──────────────────────────────────────────────────────

    def bind_schema(self, schema: Schema) -> None:
        """Called once, when the schema binds this driver."""
        self.schema = schema

    def prepare_field_definition(
        self, model: Model, name: str, field: FieldDefinition
    ) -> Optional[FieldDefinition]:
        """
        Adjust a field definition at model-definition time.

        Return the (possibly rewritten) field, or None to drop the field.
        A driver may also preset ``field.type_handler``.
        """
        return field

    # ── Connection ───────────────────────────────────────────────────

    @abstractmethod
    async def connect(self) -> Any:
        """Connect, set ``client`` and ``connected``, emit ``connect``."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect, reset ``connected``, emit ``disconnect``."""
        ...

    # ── Queries ──────────────────────────────────────────────────────

    @abstractmethod
    async def find_one(
        self,
        model: Model,
        criteria: Criteria,
        fields: Projection,
        sort: Sort,
        options: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """The first matching entity, or None."""
        ...

    @abstractmethod
    async def find(
        self,
        model: Model,
        criteria: Criteria,
        fields: Projection,
        sort: Sort,
        options: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        """All matching entities; honors ``skip`` and ``limit`` options."""
        ...

    @abstractmethod
    async def count(self, model: Model, criteria: Criteria, options: Dict[str, Any]) -> int:
        ...

    # ── Entity writes ────────────────────────────────────────────────

    @abstractmethod
    async def insert(
        self, model: Model, entities: List[Dict[str, Any]], options: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Insert new entities. Raises EntityExistsFault on a key collision."""
        ...

    @abstractmethod
    async def update(
        self, model: Model, entities: List[Dict[str, Any]], options: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Replace existing entities. Raises EntityNotFoundFault on a missing key."""
        ...

    @abstractmethod
    async def save(
        self, model: Model, entities: List[Dict[str, Any]], options: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Insert or replace entities."""
        ...

    @abstractmethod
    async def remove(
        self, model: Model, entities: List[Dict[str, Any]], options: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """
        Remove entities by primary key and return the removed ones as they
        were stored. Raises EntityNotFoundFault on a missing key.
        """
        ...

    # ── Query writes ─────────────────────────────────────────────────

    @abstractmethod
    async def update_query(
        self,
        model: Model,
        criteria: Criteria,
        update: Update,
        options: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        """
        Update matching entities and return them as updated.

        Options:
            upsert: insert ``update.entity_insert(criteria)`` when nothing matches
            multi: update every match instead of the first one
        """
        ...

    @abstractmethod
    async def remove_query(
        self, model: Model, criteria: Criteria, options: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """
        Remove matching entities and return them.

        Options:
            multi: remove every match instead of the first one
        """
        ...
