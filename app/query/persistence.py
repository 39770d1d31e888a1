"""Execute FilterDescriptions against the database with SQLAlchemy.

Field names in a description are the camelCase API names; they are resolved
against the ORM model here. Names that do not exist on the model raise
PersistenceError.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from pydantic.alias_generators import to_camel, to_snake
from sqlalchemy import DateTime, and_, false, func, inspect as sa_inspect, not_, or_, select, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.properties import ColumnProperty
from sqlalchemy.orm.relationships import RelationshipProperty

from app.core.exceptions import PersistenceError
from app.core.models import Post, User

from .conditions import (
    And,
    Condition,
    CursorPagination,
    Equals,
    FilterDescription,
    In,
    MatchOperator,
    Not,
    Or,
    OrderSpec,
    Quantifier,
    Range,
    RelationExists,
    Selection,
    SelectionMode,
    SortDirection,
    StringMatch,
    WhereClause,
    flatten,
)
from .model_config import Entity
from .parser import parse_iso_datetime

logger = logging.getLogger(__name__)

_ENTITY_MODELS: Dict[Entity, Type[Any]] = {
    Entity.USERS: User,
    Entity.POSTS: Post,
}


def get_model(entity: Entity) -> Type[Any]:
    return _ENTITY_MODELS[entity]


def _escape_like(value: str) -> str:
    """Escape LIKE metacharacters so user input only ever matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ----- name resolution -----


def _model_name(model: Type[Any]) -> str:
    return model.__tablename__


def _column_prop(model: Type[Any], name: str) -> ColumnProperty:
    prop = sa_inspect(model).attrs.get(to_snake(name))
    if not isinstance(prop, ColumnProperty):
        raise PersistenceError(f"Unknown field '{name}' on {_model_name(model)}")
    return prop


def _column(model: Type[Any], name: str):
    return getattr(model, _column_prop(model, name).key)


def _relationship(model: Type[Any], name: str) -> RelationshipProperty:
    prop = sa_inspect(model).attrs.get(to_snake(name))
    if not isinstance(prop, RelationshipProperty):
        raise PersistenceError(f"Unknown relation '{name}' on {_model_name(model)}")
    return prop


def _is_relationship(model: Type[Any], name: str) -> bool:
    return isinstance(sa_inspect(model).attrs.get(to_snake(name)), RelationshipProperty)


def _coerce(model: Type[Any], name: str, value: Any) -> Any:
    """JSON conditions carry datetimes as ISO strings."""
    if isinstance(value, str) and isinstance(_column_prop(model, name).columns[0].type, DateTime):
        try:
            return parse_iso_datetime(value)
        except ValueError as e:
            raise PersistenceError(str(e)) from e
    return value


# ----- conditions -----


def compile_condition(model: Type[Any], condition: Condition):
    """Compile a condition node into a SQL boolean expression on ``model``."""
    if isinstance(condition, WhereClause):
        parts = [compile_condition(model, c) for c in flatten(condition)]
        return and_(true(), *parts)
    if isinstance(condition, Equals):
        col = _column(model, condition.field)
        if condition.value is None:
            return col.is_(None)
        return col == _coerce(model, condition.field, condition.value)
    if isinstance(condition, In):
        col = _column(model, condition.field)
        values = [_coerce(model, condition.field, v) for v in condition.values]
        return col.not_in(values) if condition.negate else col.in_(values)
    if isinstance(condition, StringMatch):
        col = _column(model, condition.field)
        escaped = _escape_like(condition.value)
        if condition.operator == MatchOperator.CONTAINS:
            pattern = f"%{escaped}%"
        elif condition.operator == MatchOperator.STARTS_WITH:
            pattern = f"{escaped}%"
        else:
            pattern = f"%{escaped}"
        if condition.insensitive:
            return col.ilike(pattern, escape="\\")
        return col.like(pattern, escape="\\")
    if isinstance(condition, Range):
        col = _column(model, condition.field)
        bounds = []
        if condition.gte is not None:
            bounds.append(col >= _coerce(model, condition.field, condition.gte))
        if condition.lte is not None:
            bounds.append(col <= _coerce(model, condition.field, condition.lte))
        if condition.gt is not None:
            bounds.append(col > _coerce(model, condition.field, condition.gt))
        if condition.lt is not None:
            bounds.append(col < _coerce(model, condition.field, condition.lt))
        return and_(true(), *bounds)
    if isinstance(condition, RelationExists):
        return _compile_relation(model, condition)
    if isinstance(condition, And):
        return and_(true(), *[compile_condition(model, c) for c in condition.conditions])
    if isinstance(condition, Or):
        if not condition.conditions:
            return false()
        return or_(*[compile_condition(model, c) for c in condition.conditions])
    if isinstance(condition, Not):
        return not_(compile_condition(model, condition.condition))
    raise PersistenceError(f"Unsupported condition: {condition!r}")


def _compile_relation(model: Type[Any], condition: RelationExists):
    prop = _relationship(model, condition.relation)
    attr = getattr(model, prop.key)
    target = prop.mapper.class_
    inner = compile_condition(target, condition.where) if condition.where is not None else None
    exists = attr.any if prop.uselist else attr.has
    if condition.quantifier == Quantifier.SOME:
        return exists(inner)
    if condition.quantifier == Quantifier.NONE:
        return ~exists(inner)
    # EVERY: no related row fails the condition
    if inner is None:
        return true()
    return ~exists(not_(inner))


# ----- ordering -----


def _relation_subquery(model: Type[Any], relation: str, field: str):
    """Correlated scalar subquery: a to-one related column, or a to-many row count."""
    prop = _relationship(model, relation)
    target = prop.mapper.class_
    if field == "_count":
        if not prop.uselist:
            raise PersistenceError(f"Cannot count to-one relation '{relation}'")
        stmt = select(func.count()).select_from(target)
    else:
        if prop.uselist:
            raise PersistenceError(f"Cannot order by a field of to-many relation '{relation}'")
        stmt = select(_column(target, field))
    return stmt.where(prop.primaryjoin).correlate(model).scalar_subquery()


def _order_expression(model: Type[Any], order: OrderSpec):
    if len(order.path) == 1:
        return _column(model, order.path[0])
    relation, field = order.path
    return _relation_subquery(model, relation, field)


def _order_clauses(model: Type[Any], order_by: Sequence[OrderSpec]) -> List[Tuple[Any, SortDirection]]:
    keys = [(_order_expression(model, o), o.direction) for o in order_by]
    # Primary key as final tie-breaker keeps pages and cursors stable
    keys.append((model.id, SortDirection.ASC))
    return keys


def _sorted(expr, direction: SortDirection):
    ordered = expr.asc() if direction == SortDirection.ASC else expr.desc()
    return ordered.nulls_last()


async def _cursor_condition(db: AsyncSession, model: Type[Any], keys: List[Tuple[Any, SortDirection]], cursor: str):
    """Rows at or after the cursor row in the current ordering, or None if the cursor row does not exist.

    NULLs sort last in both directions, so a non-null key is followed by larger
    (or smaller) values and then by NULLs. A NULL key is only followed by ties.
    """
    result = await db.execute(select(*[expr for expr, _ in keys]).where(model.id == cursor))
    row = result.first()
    if row is None:
        return None
    clauses = []
    for index, (expr, direction) in enumerate(keys):
        value = row[index]
        prefix = [
            e.is_(None) if v is None else e == v
            for (e, _), v in zip(keys[:index], row[:index])
        ]
        if value is None:
            continue
        beyond = expr > value if direction == SortDirection.ASC else expr < value
        after = or_(beyond, expr.is_(None))
        clauses.append(and_(true(), *prefix, after))
    clauses.append(model.id == cursor)
    return or_(*clauses)


# ----- selection / serialization -----


def _loader_options(model: Type[Any], selection: Optional[Selection]) -> list:
    if selection is None:
        return []
    options = []
    names = set(selection.relations)
    if selection.mode == SelectionMode.SELECT:
        names.update(name for name in selection.fields if _is_relationship(model, name))
    for name in names:
        prop = _relationship(model, name)
        attr = getattr(model, prop.key)
        nested = selection.relations.get(name)
        if nested is not None and nested.where is not None:
            target = prop.mapper.class_
            attr = attr.and_(compile_condition(target, nested.where))
        options.append(selectinload(attr))
    return options


def _to_many_relations(model: Type[Any]) -> List[RelationshipProperty]:
    return [rel for rel in sa_inspect(model).relationships if rel.uselist]


Counts = Dict[Tuple[Type[Any], Any], Dict[str, int]]


async def _relation_counts(db: AsyncSession, model: Type[Any], ids: Sequence[Any], counts: Counts) -> None:
    for row_id in ids:
        counts.setdefault((model, row_id), {})
    if not ids:
        return
    for rel in _to_many_relations(model):
        stmt = select(model.id, _relation_subquery(model, rel.key, "_count")).where(model.id.in_(ids))
        for row_id, n in (await db.execute(stmt)).all():
            counts[(model, row_id)][to_camel(rel.key)] = n


async def _collect_counts(db: AsyncSession, rows: Sequence[Any], selection: Optional[Selection]) -> Counts:
    """``_count`` values for the rows and for related rows whose selection asks for them."""
    counts: Counts = {}
    if selection is None or not rows:
        return counts
    model = type(rows[0])
    if selection.count:
        await _relation_counts(db, model, [r.id for r in rows], counts)
    for name, nested in selection.relations.items():
        if not nested.count:
            continue
        prop = _relationship(model, name)
        related: List[Any] = []
        for row in rows:
            value = getattr(row, prop.key)
            if prop.uselist:
                related.extend(value)
            elif value is not None:
                related.append(value)
        await _relation_counts(db, prop.mapper.class_, list({r.id for r in related}), counts)
    return counts


def _scalars(obj: Any) -> Dict[str, Any]:
    mapper = sa_inspect(type(obj))
    return {to_camel(col.key): getattr(obj, col.key) for col in mapper.column_attrs}


def _serialize(obj: Any, selection: Optional[Selection], counts: Counts) -> Dict[str, Any]:
    model = type(obj)
    if selection is None:
        return _scalars(obj)

    if selection.mode == SelectionMode.SELECT:
        out: Dict[str, Any] = {}
        for name in selection.fields:
            if _is_relationship(model, name):
                out[name] = _serialize_related(obj, name, None, counts)
            else:
                out[name] = getattr(obj, _column_prop(model, name).key)
    else:
        out = _scalars(obj)

    for name, nested in selection.relations.items():
        nested_selection = nested if nested.mode == SelectionMode.SELECT else None
        out[name] = _serialize_related(obj, name, nested_selection, counts)

    if selection.count:
        out["_count"] = counts.get((model, obj.id), {})
    return out


def _serialize_related(obj: Any, name: str, selection: Optional[Selection], counts: Counts):
    prop = _relationship(type(obj), name)
    value = getattr(obj, prop.key)
    if prop.uselist:
        return [_serialize(item, selection, counts) for item in value]
    if value is None:
        return None
    return _serialize(value, selection, counts)


def _check_selection(model: Type[Any], selection: Optional[Selection]) -> None:
    """Fail early on unknown names so no query runs for a bad projection."""
    if selection is None:
        return
    for name in selection.fields:
        if not _is_relationship(model, name):
            _column_prop(model, name)
    for name, nested in selection.relations.items():
        target = _relationship(model, name).mapper.class_
        for sub in nested.fields:
            if not _is_relationship(target, sub):
                _column_prop(target, sub)


# ----- public operations -----


def build_where(model: Type[Any], where: Optional[WhereClause]):
    if where is None:
        return None
    return compile_condition(model, where)


async def find_many(db: AsyncSession, entity: Entity, description: FilterDescription) -> List[Dict[str, Any]]:
    """Rows matching ``description``, serialized to camelCase dicts."""
    model = get_model(entity)
    _check_selection(model, description.selection)

    stmt = select(model)
    where_expr = build_where(model, description.where)
    if where_expr is not None:
        stmt = stmt.where(where_expr)

    if description.distinct:
        cols = [_column(model, name) for name in description.distinct]
        first_ids = select(func.min(model.id)).group_by(*cols)
        if where_expr is not None:
            first_ids = first_ids.where(where_expr)
        stmt = stmt.where(model.id.in_(first_ids))

    keys = _order_clauses(model, description.order_by)
    if isinstance(description.pagination, CursorPagination):
        cursor_expr = await _cursor_condition(db, model, keys, description.pagination.cursor)
        if cursor_expr is None:
            logger.debug("Cursor %s not found on %s", description.pagination.cursor, entity.value)
            return []
        stmt = stmt.where(cursor_expr)

    stmt = stmt.order_by(*[_sorted(expr, d) for expr, d in keys])
    if description.skip:
        stmt = stmt.offset(description.skip)
    if description.take is not None:
        stmt = stmt.limit(description.take)
    # Refresh rows already in the session so filtered includes reload their collections
    stmt = stmt.options(*_loader_options(model, description.selection)).execution_options(populate_existing=True)

    result = await db.execute(stmt)
    rows = result.scalars().all()

    counts = await _collect_counts(db, rows, description.selection)
    return [_serialize(row, description.selection, counts) for row in rows]


async def find_unique(
    db: AsyncSession,
    entity: Entity,
    record_id: str,
    selection: Optional[Selection] = None,
) -> Optional[Dict[str, Any]]:
    model = get_model(entity)
    _check_selection(model, selection)
    stmt = select(model).where(model.id == record_id).options(*_loader_options(model, selection))
    stmt = stmt.execution_options(populate_existing=True)
    row = (await db.execute(stmt)).scalars().first()
    if row is None:
        return None
    counts = await _collect_counts(db, [row], selection)
    return _serialize(row, selection, counts)


async def count(db: AsyncSession, entity: Entity, where: Optional[WhereClause]) -> int:
    model = get_model(entity)
    stmt = select(func.count()).select_from(model)
    where_expr = build_where(model, where)
    if where_expr is not None:
        stmt = stmt.where(where_expr)
    result = await db.execute(stmt)
    return result.scalar() or 0

