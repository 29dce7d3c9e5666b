"""
Missy Query Objects — normalized criteria, projection, sort and update.

Each object accepts loose user input and keeps one canonical form, which
is what drivers receive. The ``entity_*`` methods evaluate the canonical
form in-process; the memory driver is built on them.

Usage:
    criteria = Criteria(User, {"age": {"$gte": "18"}, "login": "kolypto"})
    criteria.criteria
    # {"age": {"$gte": 18}, "login": {"$eq": "kolypto"}}

    Projection({"roles": 0}).entity_apply(User, entity)
    Sort("age-,login").entities_sort(entities)
    Update(User, {"login": "a", "$inc": {"age": 1}}).entity_update(entity)
"""

from __future__ import annotations

import copy
import re
from functools import cmp_to_key
from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING

from ..faults import ModelFault, PrimaryKeyFault, UnknownOperatorFault
from ..types import UNSET

if TYPE_CHECKING:
    from .base import Model

__all__ = ["Criteria", "Projection", "Sort", "Update"]


def _convert(model: Optional[Model], field_name: str, value: Any) -> Any:
    """Save-convert a value; unknown fields and model-less objects pass through."""
    if model is None:
        return value
    return model.converter.convert_value(field_name, "save", value, ignore_unknown=True)


def _same(a: Any, b: Any) -> bool:
    """Strict equality: a bool never equals a number."""
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    return a == b


# ── Criteria ─────────────────────────────────────────────────────────────────


class Criteria:
    """
    A condition on fields, normalized.

    Canonical form: ``{field: {operator: operand, ...}, ...}`` with operands
    already converted to storage values. All conditions are ANDed. Unknown
    fields are kept: the driver decides whether it cares.

    Supported operators: $gt, $gte, $in, $lt, $lte, $ne, $eq, $nin, $exists.
    $eq is non-standard but keeps the form uniform.
    """

    OPERATORS = ("$gt", "$gte", "$in", "$lt", "$lte", "$ne", "$eq", "$nin", "$exists")

    # Operand handling; everything else is a converted scalar
    OPERATOR_TYPES = {
        "$in": "vector",
        "$nin": "vector",
        "$exists": "raw",
    }

    def __init__(self, model: Optional[Model] = None, criteria: Any = None):
        self.model = model

        if isinstance(criteria, Criteria):
            self.criteria = {name: dict(test) for name, test in criteria.criteria.items()}
            return

        if not isinstance(criteria, dict):
            criteria = {}

        self.criteria: Dict[str, Dict[str, Any]] = {}
        for field_name, test in criteria.items():
            if not self._is_operator_map(test):
                test = {"$eq": test}
            self.criteria[field_name] = {
                operator: self._convert_operand(field_name, operator, operand)
                for operator, operand in test.items()
            }

    @staticmethod
    def _is_operator_map(test: Any) -> bool:
        return isinstance(test, dict) and any(
            isinstance(key, str) and key.startswith("$") for key in test
        )

    def _convert_operand(self, field_name: str, operator: str, operand: Any) -> Any:
        if operator not in self.OPERATORS:
            raise UnknownOperatorFault(self.model, operator, field_name)

        kind = self.OPERATOR_TYPES.get(operator)
        if kind == "raw":
            return operand
        if kind == "vector":
            if not isinstance(operand, (list, tuple, set, frozenset)):
                operand = [operand]
            return [_convert(self.model, field_name, item) for item in operand]
        return _convert(self.model, field_name, operand)

    @classmethod
    def from_pk(cls, model: Model, pk: Any) -> "Criteria":
        """
        Build criteria from a primary key value.

        Accepts a scalar (single-field keys), a sequence matched
        positionally against the declared key fields, or a dict covering
        every key field.

        Raises:
            PrimaryKeyFault: empty, wrong arity or incomplete key
        """
        pk_fields = model.options.pk

        if pk is None or pk is UNSET:
            raise PrimaryKeyFault(model, "Empty primary key given")

        if not isinstance(pk, (dict, list, tuple)):
            pk = [pk]

        if isinstance(pk, (list, tuple)):
            if len(pk) != len(pk_fields):
                raise PrimaryKeyFault(model, "Inconsistent primary key fields count", pk=list(pk))
            pk = dict(zip(pk_fields, pk))

        missing = [name for name in pk_fields if name not in pk]
        if missing:
            raise PrimaryKeyFault(
                model,
                f"Primary key incomplete, missing: {', '.join(missing)}",
                pk=dict(pk),
            )
        return cls(model, pk)

    @staticmethod
    def match_operator(operator: str, value: Any, operand: Any) -> bool:
        """
        Test a single operator. ``value`` is UNSET when the entity lacks the
        field; ordering comparisons against missing or incomparable values
        are false.
        """
        if operator == "$exists":
            return (value is not UNSET) == bool(operand)
        if operator == "$eq":
            return value is not UNSET and _same(value, operand)
        if operator == "$ne":
            if value is UNSET:
                value = None
            return not _same(value, operand)
        if operator == "$in":
            return value is not UNSET and any(_same(value, item) for item in operand)
        if operator == "$nin":
            return value is UNSET or not any(_same(value, item) for item in operand)

        if value is UNSET or value is None or operand is None:
            return False
        try:
            if operator == "$gt":
                return value > operand
            if operator == "$gte":
                return value >= operand
            if operator == "$lt":
                return value < operand
            if operator == "$lte":
                return value <= operand
        except TypeError:
            return False
        raise ValueError(f"Unknown operator: {operator}")

    def entity_match(self, entity: Dict[str, Any]) -> bool:
        """Whether the entity satisfies every condition."""
        return all(
            self.match_operator(operator, entity.get(field_name, UNSET), operand)
            for field_name, test in self.criteria.items()
            for operator, operand in test.items()
        )

    def __bool__(self) -> bool:
        return bool(self.criteria)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Criteria):
            return self.criteria == other.criteria
        return NotImplemented

    def __repr__(self) -> str:
        return f"Criteria({self.criteria!r})"


# ── Projection ───────────────────────────────────────────────────────────────


class Projection:
    """
    A field selection, normalized.

    Accepted syntaxes:
        None, {}, [], "", "*"    – all fields
        ["a", "b"], "a,b", "+a,b" – inclusion: only the named fields
        {"a": 1, "b": 1}          – inclusion
        {"a": 0, "b": 0}, "-a,b"  – exclusion: all but the named fields

    The mode of the dict syntax is inclusion if any value is truthy.

    Attributes:
        projection: Canonical dict syntax
        inclusion_mode: Whether only the named fields are returned
    """

    def __init__(self, projection: Any = None):
        if isinstance(projection, Projection):
            self.projection = dict(projection.projection)
            self.inclusion_mode = projection.inclusion_mode
            return

        if isinstance(projection, str):
            projection = self._parse_string(projection)

        if not projection:
            self.projection: Dict[str, Any] = {}
            self.inclusion_mode = False
        elif isinstance(projection, dict):
            self.projection = dict(projection)
            self.inclusion_mode = any(bool(v) for v in projection.values())
        elif isinstance(projection, (list, tuple, set, frozenset)):
            self.projection = {name: 1 for name in projection}
            self.inclusion_mode = True
        else:
            raise TypeError(f"Unsupported projection: {projection!r}")

    @staticmethod
    def _parse_string(text: str) -> Dict[str, int]:
        text = text.strip()
        if text in ("", "*"):
            return {}
        mode = 1
        if text[0] in "+-":
            mode = 0 if text[0] == "-" else 1
            text = text[1:]
        return {name.strip(): mode for name in text.split(",") if name.strip()}

    @property
    def names(self) -> List[str]:
        """Named fields: included ones in inclusion mode, excluded ones otherwise."""
        if self.inclusion_mode:
            return [name for name, flag in self.projection.items() if flag]
        return list(self.projection)

    def get_field_details(self, model: Model) -> Dict[str, List[str]]:
        """
        Effective field sets against a model.

        Returns:
            ``{"fields": [...], "pick": [...], "omit": [...]}``
        """
        model_fields = list(model.fields)

        if not self.projection:
            return {"fields": model_fields, "pick": [], "omit": []}

        names = self.names
        if self.inclusion_mode:
            return {"fields": names, "pick": names, "omit": []}

        return {
            "fields": [name for name in model_fields if name not in self.projection],
            "pick": [],
            "omit": names,
        }

    def entity_apply(self, model: Model, entity: Dict[str, Any]) -> Dict[str, Any]:
        """Return a projected copy of the entity."""
        details = self.get_field_details(model)
        if details["pick"]:
            pick = set(details["pick"])
            entity = {k: v for k, v in entity.items() if k in pick}
        if details["omit"]:
            omit = set(details["omit"])
            entity = {k: v for k, v in entity.items() if k not in omit}
        return entity

    def includes_fields(self, names: Iterable[str]) -> bool:
        """Whether every named field survives this projection."""
        if not self.projection:
            return True
        if self.inclusion_mode:
            included = set(self.names)
            return all(name in included for name in names)
        return not any(name in self.projection for name in names)

    def __bool__(self) -> bool:
        return bool(self.projection)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Projection):
            return (self.projection, self.inclusion_mode) == (other.projection, other.inclusion_mode)
        return NotImplemented

    def __str__(self) -> str:
        if not self.projection:
            return "*"
        return ("+" if self.inclusion_mode else "-") + ",".join(self.names)

    def __repr__(self) -> str:
        return f"Projection({str(self)!r})"


# ── Sort ─────────────────────────────────────────────────────────────────────

_SORT_ITEM = re.compile(r"^(.*?)([+-])?$")


def _compare_values(a: Any, b: Any) -> int:
    """Three-way comparison; None sorts first, incomparable types by type name."""
    if a is b:
        return 0
    if a is None:
        return -1
    if b is None:
        return 1
    try:
        if a == b:
            return 0
        return -1 if a < b else 1
    except TypeError:
        ka, kb = (type(a).__name__, str(a)), (type(b).__name__, str(b))
        return (ka > kb) - (ka < kb)


class Sort:
    """
    Sort specification, normalized.

    Accepted syntaxes:
        "a,b+;c-"                   – string, "," or ";" separated
        ["a", "b+", "c-"]           – list
        {"a": 1, "b": -1, "c": "-"} – dict

    Canonical form: ``{field: +1 | -1}`` in declaration order. Directions
    -1, "-1", "-", "0", 0, False and "" are descending; anything else is
    ascending.
    """

    DESCENDING = (-1, "-1", "-", "0", 0, False, "")

    def __init__(self, sort: Any = None):
        if isinstance(sort, Sort):
            self.sort = dict(sort.sort)
            return

        if not sort:
            sort = {}

        if isinstance(sort, str):
            sort = [item.strip() for item in re.split(r"[,;]", sort)]

        if isinstance(sort, (list, tuple)):
            sort = dict(self._parse_item(item) for item in sort if item)

        if not isinstance(sort, dict):
            raise TypeError(f"Unsupported sort: {sort!r}")

        self.sort: Dict[str, int] = {
            name: self.direction(direction) for name, direction in sort.items()
        }

    @staticmethod
    def _parse_item(item: Any):
        if isinstance(item, (list, tuple)) and len(item) == 2:
            return item[0], item[1]
        name, sign = _SORT_ITEM.match(str(item)).groups()
        return name, sign

    @classmethod
    def direction(cls, value: Any) -> int:
        return -1 if value in cls.DESCENDING else 1

    def compare(self, a: Dict[str, Any], b: Dict[str, Any]) -> int:
        """Compare two entities key by key, in declaration order."""
        for name, direction in self.sort.items():
            result = _compare_values(a.get(name), b.get(name))
            if result:
                return result * direction
        return 0

    def entities_sort(self, entities: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Return a stably sorted copy of the list."""
        entities = list(entities)
        if not self.sort:
            return entities
        return sorted(entities, key=cmp_to_key(self.compare))

    def __bool__(self) -> bool:
        return bool(self.sort)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Sort):
            return list(self.sort.items()) == list(other.sort.items())
        return NotImplemented

    def __str__(self) -> str:
        return ",".join(
            f"{name}{'+' if direction > 0 else '-'}" for name, direction in self.sort.items()
        )

    def __repr__(self) -> str:
        return f"Sort({str(self)!r})"


# ── Update ───────────────────────────────────────────────────────────────────


class Update:
    """
    MongoDB-style update document, normalized.

    Every supported operator is always present in the canonical form. Bare
    keys are shorthand for ``$set``; when a field is given both ways, the
    explicit ``$set`` entry wins. ``$set`` and ``$setOnInsert`` values are
    converted to storage values.
    """

    OPERATORS = ("$set", "$inc", "$unset", "$setOnInsert", "$rename")

    def __init__(self, model: Optional[Model] = None, update: Any = None):
        self.model = model

        if isinstance(update, Update):
            self.update = {op: dict(update.update[op]) for op in self.OPERATORS}
            return

        if update is None:
            update = {}
        if not isinstance(update, dict):
            raise ModelFault(model, f"Update must be an object, got {type(update).__name__}")

        self.update: Dict[str, Dict[str, Any]] = {op: {} for op in self.OPERATORS}
        shorthand = {}
        for key, value in update.items():
            if not isinstance(key, str):
                raise ModelFault(model, f"Update keys must be strings, got {key!r}")
            if not key.startswith("$"):
                shorthand[key] = value
                continue
            if key not in self.OPERATORS:
                raise UnknownOperatorFault(model, key)
            if not isinstance(value, dict):
                raise ModelFault(model, f"Operand of {key} must be an object")
            self.update[key].update(value)

        explicit = self.update["$set"]
        self.update["$set"] = {**shorthand, **explicit}
        for op in ("$set", "$setOnInsert"):
            self.update[op] = {
                name: _convert(model, name, value) for name, value in self.update[op].items()
            }

    def entity_update(self, entity: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply $set, $inc, $unset, $rename to the entity in place.

        $inc counts missing (or None) values from 0. $setOnInsert is ignored.
        """
        for name, value in self.update["$set"].items():
            entity[name] = copy.deepcopy(value)
        for name, value in self.update["$inc"].items():
            entity[name] = (entity.get(name) or 0) + value
        for name in self.update["$unset"]:
            entity.pop(name, None)
        for old, new in self.update["$rename"].items():
            if old in entity:
                entity[new] = entity.pop(old)
        return entity

    def entity_insert(self, criteria: Any = None) -> Dict[str, Any]:
        """
        Build a new entity for an upsert that matched nothing: the $eq
        values of the criteria, then $setOnInsert, then the regular update.
        """
        entity: Dict[str, Any] = {}
        if criteria is not None:
            if not isinstance(criteria, Criteria):
                criteria = Criteria(self.model, criteria)
            for name, test in criteria.criteria.items():
                if "$eq" in test:
                    entity[name] = copy.deepcopy(test["$eq"])
        entity.update(copy.deepcopy(self.update["$setOnInsert"]))
        return self.entity_update(entity)

    def __bool__(self) -> bool:
        return any(self.update.values())

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Update):
            return self.update == other.update
        return NotImplemented

    def __repr__(self) -> str:
        present = {op: ops for op, ops in self.update.items() if ops}
        return f"Update({present!r})"
