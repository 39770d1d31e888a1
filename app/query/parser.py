"""Parsing of raw parameter values: ISO datetimes, and JSON ``and`` / ``or`` condition lists.

JSON conditions use the Prisma ``where`` grammar::

    {"published": true}
    {"title": {"contains": "next", "mode": "insensitive"}}
    {"createdAt": {"gte": "2024-01-01T00:00:00Z"}}
    {"posts": {"some": {"published": true}}}
    {"OR": [{...}, {...}]}
"""

import json
import re
from datetime import datetime
from typing import AbstractSet, Any, Iterator, List, Mapping, Tuple

from .conditions import (
    And,
    Condition,
    Equals,
    In,
    MatchOperator,
    Not,
    Quantifier,
    Range,
    RelationExists,
    StringMatch,
    WhereClause,
)

_ISO_DATETIME = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(:\d{2}(\.\d{3}(\d{3})?)?)?(Z|[+-]\d{2}:\d{2})?$"
)

_MATCH_OPS = {op.value: op for op in MatchOperator}
_RANGE_OPS = ("gt", "gte", "lt", "lte")
FIELD_OPS = frozenset({"equals", "not", "in", "notIn", "mode", *_MATCH_OPS, *_RANGE_OPS})
RELATION_OPS = {
    "some": Quantifier.SOME,
    "none": Quantifier.NONE,
    "every": Quantifier.EVERY,
    "is": Quantifier.SOME,
    "isNot": Quantifier.NONE,
}


class ConditionParseError(ValueError):
    """Raised when an ``and`` / ``or`` parameter is not a valid condition list."""


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 datetime (``T`` separator required, ``Z`` accepted)."""
    if not isinstance(value, str) or not _ISO_DATETIME.match(value):
        raise ValueError(f"Invalid datetime: {value!r}")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_condition_list(raw: str) -> Tuple[Condition, ...]:
    """Parse a JSON-encoded array of condition objects."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConditionParseError(f"Invalid JSON: {e.msg}") from e
    if not isinstance(data, list):
        raise ConditionParseError("Expected a JSON array of condition objects")
    return tuple(parse_where(item) for item in data)


def parse_where(data: Any) -> WhereClause:
    if not isinstance(data, Mapping):
        raise ConditionParseError("Each condition must be a JSON object")
    where = WhereClause()
    for key, value in data.items():
        if key == "AND":
            where = where.merge(WhereClause(all_of=_parse_nested_list(value)))
        elif key == "OR":
            where = where.merge(WhereClause(any_of=_parse_nested_list(value)))
        elif key == "NOT":
            negated = tuple(Not(c) for c in _parse_nested_list(value))
            where = where.with_condition("NOT", negated[0] if len(negated) == 1 else And(negated))
        else:
            where = where.with_condition(key, _parse_entry(key, value))
    return where


def _parse_nested_list(value: Any) -> Tuple[Condition, ...]:
    # Prisma accepts a single object where a list is expected
    if isinstance(value, Mapping):
        return (parse_where(value),)
    if isinstance(value, list):
        return tuple(parse_where(v) for v in value)
    raise ConditionParseError("AND / OR / NOT expect an object or a list of objects")


def _parse_entry(key: str, value: Any) -> Condition:
    if not isinstance(value, Mapping):
        if isinstance(value, list):
            raise ConditionParseError(f"Field '{key}' cannot be compared to a list; use 'in'")
        return Equals(key, value)
    keys = set(value)
    if not keys:
        # {"title": {}} filters nothing
        return WhereClause()
    if keys <= set(RELATION_OPS):
        return _parse_relation(key, value)
    if keys <= FIELD_OPS:
        return _parse_field_ops(key, value)
    # To-one shorthand: {"author": {"name": ...}}
    return RelationExists(key, Quantifier.SOME, parse_where(value))


def _parse_relation(relation: str, ops: Mapping[str, Any]) -> Condition:
    conditions: List[Condition] = []
    for op, body in ops.items():
        quantifier = RELATION_OPS[op]
        if body is None:
            # {"author": {"is": null}} -> no related row
            if op == "is":
                quantifier = Quantifier.NONE
            elif op == "isNot":
                quantifier = Quantifier.SOME
            conditions.append(RelationExists(relation, quantifier))
            continue
        inner = parse_where(body)
        conditions.append(RelationExists(relation, quantifier, None if inner.is_empty() else inner))
    return conditions[0] if len(conditions) == 1 else And(tuple(conditions))


def _parse_field_ops(name: str, ops: Mapping[str, Any]) -> Condition:
    insensitive = ops.get("mode") == "insensitive"
    conditions: List[Condition] = []
    bounds = {}
    for op, value in ops.items():
        if op == "mode":
            if value not in ("default", "insensitive"):
                raise ConditionParseError(f"Invalid mode for '{name}': {value!r}")
        elif op == "equals":
            conditions.append(Equals(name, value))
        elif op in ("in", "notIn"):
            if not isinstance(value, list):
                raise ConditionParseError(f"'{op}' on '{name}' expects a list")
            conditions.append(In(name, tuple(value), negate=op == "notIn"))
        elif op in _MATCH_OPS:
            if not isinstance(value, str):
                raise ConditionParseError(f"'{op}' on '{name}' expects a string")
            conditions.append(StringMatch(name, _MATCH_OPS[op], value, insensitive=insensitive))
        elif op in _RANGE_OPS:
            bounds[op] = value
        elif op == "not":
            if isinstance(value, Mapping):
                conditions.append(Not(_parse_field_ops(name, value)))
            else:
                conditions.append(Not(Equals(name, value)))
    if bounds:
        conditions.append(Range(name, **bounds))
    if not conditions:
        raise ConditionParseError(f"No comparison given for '{name}'")
    return conditions[0] if len(conditions) == 1 else And(tuple(conditions))


def _field_values(condition: Condition) -> Iterator[Tuple[str, Any]]:
    if isinstance(condition, WhereClause):
        for nested in (*condition.fields.values(), *(condition.all_of or ()), *(condition.any_of or ())):
            yield from _field_values(nested)
    elif isinstance(condition, Equals):
        yield condition.field, condition.value
    elif isinstance(condition, In):
        for value in condition.values:
            yield condition.field, value
    elif isinstance(condition, Range):
        for op in _RANGE_OPS:
            yield condition.field, getattr(condition, op)
    elif isinstance(condition, RelationExists):
        if condition.where is not None:
            yield from _field_values(condition.where)
    elif isinstance(condition, And):
        for nested in condition.conditions:
            yield from _field_values(nested)
    elif isinstance(condition, Not):
        yield from _field_values(condition.condition)


def check_date_values(conditions: Tuple[Condition, ...], date_fields: AbstractSet[str]) -> None:
    """Reject compared values on date fields that are not ISO datetimes."""
    for condition in conditions:
        for name, value in _field_values(condition):
            if name in date_fields and value is not None:
                try:
                    parse_iso_datetime(value)
                except ValueError as e:
                    raise ConditionParseError(f"'{name}': {e}") from e


def split_csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]
