"""Condition nodes and the filter description produced by the query builder.

Every value here is immutable. Stages that want a different description build
a new one (``dataclasses.replace`` or the ``with_*`` helpers).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class MatchOperator(str, Enum):
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"


class Quantifier(str, Enum):
    SOME = "some"
    NONE = "none"
    EVERY = "every"


class SelectionMode(str, Enum):
    SELECT = "select"
    INCLUDE = "include"


# ----- Condition nodes -----


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any


@dataclass(frozen=True)
class In:
    field: str
    values: Tuple[Any, ...]
    negate: bool = False


@dataclass(frozen=True)
class StringMatch:
    field: str
    operator: MatchOperator
    value: str
    insensitive: bool = True


@dataclass(frozen=True)
class Range:
    """Bounds on a date or number field. ``gte``/``lte`` are inclusive."""

    field: str
    gte: Any = None
    lte: Any = None
    gt: Any = None
    lt: Any = None


@dataclass(frozen=True)
class RelationExists:
    """At least one / no / every related row matches ``where`` (any row when ``where`` is None)."""

    relation: str
    quantifier: Quantifier
    where: Optional["Condition"] = None


@dataclass(frozen=True)
class And:
    conditions: Tuple["Condition", ...]


@dataclass(frozen=True)
class Or:
    conditions: Tuple["Condition", ...]


@dataclass(frozen=True)
class Not:
    condition: "Condition"


Condition = Union[Equals, In, StringMatch, Range, RelationExists, And, Or, Not, "WhereClause"]


@dataclass(frozen=True)
class WhereClause:
    """Conditions keyed by field or relation name, plus explicit AND / OR lists.

    A key holds at most one condition: setting a key that is already present
    replaces the earlier condition.
    """

    fields: Mapping[str, Condition] = field(default_factory=dict)
    all_of: Optional[Tuple[Condition, ...]] = None
    any_of: Optional[Tuple[Condition, ...]] = None

    def with_condition(self, key: str, condition: Condition) -> "WhereClause":
        fields = dict(self.fields)
        fields[key] = condition
        return replace(self, fields=fields)

    def without(self, key: str) -> "WhereClause":
        fields = {k: v for k, v in self.fields.items() if k != key}
        return replace(self, fields=fields)

    def merge(self, other: "WhereClause") -> "WhereClause":
        """Overlay ``other`` on this clause; its keys and AND/OR lists win."""
        fields = dict(self.fields)
        fields.update(other.fields)
        return WhereClause(
            fields=fields,
            all_of=other.all_of if other.all_of is not None else self.all_of,
            any_of=other.any_of if other.any_of is not None else self.any_of,
        )

    def is_empty(self) -> bool:
        return not self.fields and self.all_of is None and self.any_of is None


# ----- Ordering, pagination, projection -----


@dataclass(frozen=True)
class OrderSpec:
    """Sort key. ``path`` is ``(field,)`` or ``(relation, field)``."""

    path: Tuple[str, ...]
    direction: SortDirection = SortDirection.ASC


@dataclass(frozen=True)
class OffsetPagination:
    skip: Optional[int] = None
    take: Optional[int] = None


@dataclass(frozen=True)
class CursorPagination:
    """Start at the row whose id is ``cursor``; ``skip`` = 1 steps past that row."""

    cursor: str
    take: Optional[int] = None
    skip: int = 1


Pagination = Union[OffsetPagination, CursorPagination]


@dataclass(frozen=True)
class Selection:
    """Projection tree built from ``select=`` or ``include=``.

    ``fields`` are bare names (scalars, or whole relations in select mode).
    ``relations`` hold nested selections for dotted / included relations.
    ``where`` restricts which related rows an include attaches.
    """

    mode: SelectionMode
    fields: Tuple[str, ...] = ()
    relations: Mapping[str, "Selection"] = field(default_factory=dict)
    count: bool = False
    where: Optional[WhereClause] = None


@dataclass(frozen=True)
class FilterDescription:
    where: Optional[WhereClause] = None
    order_by: Tuple[OrderSpec, ...] = ()
    pagination: Pagination = field(default_factory=OffsetPagination)
    selection: Optional[Selection] = None
    distinct: Tuple[str, ...] = ()

    @property
    def skip(self) -> Optional[int]:
        return self.pagination.skip

    @property
    def take(self) -> Optional[int]:
        return self.pagination.take

    @property
    def cursor(self) -> Optional[str]:
        if isinstance(self.pagination, CursorPagination):
            return self.pagination.cursor
        return None

    def with_where(self, where: Optional[WhereClause]) -> "FilterDescription":
        if where is not None and where.is_empty():
            where = None
        return replace(self, where=where)

    def to_dict(self) -> Dict[str, Any]:
        """Prisma-style plain representation, handy for logging and assertions."""
        out: Dict[str, Any] = {}
        if self.selection is not None:
            out[self.selection.mode.value] = selection_to_dict(self.selection)
        if self.where is not None:
            out["where"] = condition_to_dict(self.where)
        if self.order_by:
            orders = [order_to_dict(o) for o in self.order_by]
            out["orderBy"] = orders[0] if len(orders) == 1 else orders
        if self.cursor is not None:
            out["cursor"] = {"id": self.cursor}
        if self.skip is not None:
            out["skip"] = self.skip
        if self.take is not None:
            out["take"] = self.take
        if self.distinct:
            out["distinct"] = list(self.distinct)
        return out


# ----- Plain representations -----


def _plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def condition_to_dict(condition: Condition) -> Dict[str, Any]:
    if isinstance(condition, WhereClause):
        out: Dict[str, Any] = {}
        for cond in condition.fields.values():
            out.update(condition_to_dict(cond))
        if condition.all_of is not None:
            out["AND"] = [condition_to_dict(c) for c in condition.all_of]
        if condition.any_of is not None:
            out["OR"] = [condition_to_dict(c) for c in condition.any_of]
        return out
    if isinstance(condition, Equals):
        return {condition.field: _plain(condition.value)}
    if isinstance(condition, In):
        op = "notIn" if condition.negate else "in"
        return {condition.field: {op: [_plain(v) for v in condition.values]}}
    if isinstance(condition, StringMatch):
        body: Dict[str, Any] = {condition.operator.value: condition.value}
        if condition.insensitive:
            body["mode"] = "insensitive"
        return {condition.field: body}
    if isinstance(condition, Range):
        bounds = {
            op: _plain(getattr(condition, op))
            for op in ("gte", "lte", "gt", "lt")
            if getattr(condition, op) is not None
        }
        return {condition.field: bounds}
    if isinstance(condition, RelationExists):
        inner = condition_to_dict(condition.where) if condition.where is not None else {}
        return {condition.relation: {condition.quantifier.value: inner}}
    if isinstance(condition, And):
        return {"AND": [condition_to_dict(c) for c in condition.conditions]}
    if isinstance(condition, Or):
        return {"OR": [condition_to_dict(c) for c in condition.conditions]}
    if isinstance(condition, Not):
        return {"NOT": condition_to_dict(condition.condition)}
    raise TypeError(f"Unsupported condition: {condition!r}")


def order_to_dict(order: OrderSpec) -> Dict[str, Any]:
    node: Any = order.direction.value
    for part in reversed(order.path):
        node = {part: node}
    return node


def selection_to_dict(selection: Selection) -> Dict[str, Any]:
    out: Dict[str, Any] = {name: True for name in selection.fields}
    for name, nested in selection.relations.items():
        if nested.mode == SelectionMode.SELECT:
            body: Dict[str, Any] = {"select": {f: True for f in nested.fields}}
            if nested.count:
                body["_count"] = True
        elif nested.where is not None:
            body = {"where": condition_to_dict(nested.where)}
        else:
            body = True
        out[name] = body
    if selection.count:
        out["_count"] = True
    return out


def flatten(where: WhereClause) -> List[Condition]:
    """All conditions of a clause as one implicit-AND list."""
    conditions: List[Condition] = list(where.fields.values())
    if where.all_of is not None:
        conditions.append(And(tuple(where.all_of)))
    if where.any_of is not None:
        conditions.append(Or(tuple(where.any_of)))
    return conditions
