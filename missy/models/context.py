"""
Query context — the per-call state handed to hooks and drivers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .base import Model
    from .query import Criteria, Projection, Sort, Update


@dataclass
class QueryContext:
    """
    State of one verb call.

    Hooks receive it as their second argument. Only the parts meaningful
    for the verb are set: ``find`` has criteria, fields, sort and options;
    ``insert`` has options and entities.
    """

    model: Model
    verb: str
    criteria: Optional[Criteria] = None
    fields: Optional[Projection] = None
    sort: Optional[Sort] = None
    update: Optional[Update] = None
    options: Dict[str, Any] = field(default_factory=dict)
    entities: Optional[List[Dict[str, Any]]] = None

    def __repr__(self) -> str:
        return f"<QueryContext {self.model.name}.{self.verb}>"
