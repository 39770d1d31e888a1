"""Translate flat URL query parameters into a FilterDescription.

Translation is a pure function of the parameters and the entity's ModelConfig:
selection, field conditions, relation conditions, AND/OR composition,
ordering, pagination, then distinct. Each step is skipped when its parameters
are absent.
"""

from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Tuple

from .conditions import (
    CursorPagination,
    Equals,
    FilterDescription,
    MatchOperator,
    OffsetPagination,
    OrderSpec,
    Pagination,
    Quantifier,
    Range,
    RelationExists,
    Selection,
    SelectionMode,
    SortDirection,
    StringMatch,
    WhereClause,
)
from .model_config import ModelConfig, date_param_prefix, relation_search_param
from .parser import parse_condition_list, parse_iso_datetime, split_csv

# Checked in this order; the last one present wins.
_STRING_SUFFIXES: Tuple[Tuple[str, Optional[MatchOperator]], ...] = (
    ("", None),
    ("Contains", MatchOperator.CONTAINS),
    ("StartsWith", MatchOperator.STARTS_WITH),
    ("EndsWith", MatchOperator.ENDS_WITH),
)


class QueryBuilder:
    def __init__(self, config: ModelConfig, description: Optional[FilterDescription] = None) -> None:
        self.config = config
        self.description = description or FilterDescription()

    @classmethod
    def from_params(cls, params: Mapping[str, str], config: ModelConfig) -> "QueryBuilder":
        builder = cls(config)
        selection = parse_selection(params)
        where = builder._parse_where(params)
        order_by = builder._parse_order_by(params)
        pagination = builder._parse_pagination(params)
        distinct = tuple(split_csv(params["distinct"])) if params.get("distinct") else ()
        return cls(
            config,
            FilterDescription(
                where=where,
                order_by=order_by,
                pagination=pagination,
                selection=selection,
                distinct=distinct,
            ),
        )

    def build(self) -> FilterDescription:
        return self.description

    # ----- helpers returning a new builder -----

    def add_where(self, where: WhereClause) -> "QueryBuilder":
        current = self.description.where or WhereClause()
        return QueryBuilder(self.config, self.description.with_where(current.merge(where)))

    def set_order_by(self, field: str, direction: SortDirection = SortDirection.ASC) -> "QueryBuilder":
        order = (OrderSpec(tuple(field.split(".", 1)), direction),)
        return QueryBuilder(self.config, replace(self.description, order_by=order))

    def set_limit(self, limit: int) -> "QueryBuilder":
        pagination = replace(self.description.pagination, take=min(limit, self.config.max_limit))
        return QueryBuilder(self.config, replace(self.description, pagination=pagination))

    # ----- where -----

    def _parse_where(self, params: Mapping[str, str]) -> Optional[WhereClause]:
        where = WhereClause()

        for field in self.config.string_fields:
            for suffix, operator in _STRING_SUFFIXES:
                value = params.get(f"{field}{suffix}")
                if not value:
                    continue
                if operator is None:
                    where = where.with_condition(field, Equals(field, value))
                else:
                    where = where.with_condition(field, StringMatch(field, operator, value))

        for field in self.config.date_fields:
            prefix = date_param_prefix(field)
            after = params.get(f"{prefix}After")
            before = params.get(f"{prefix}Before")
            if after or before:
                where = where.with_condition(
                    field,
                    Range(
                        field,
                        gte=parse_iso_datetime(after) if after else None,
                        lte=parse_iso_datetime(before) if before else None,
                    ),
                )

        for field in self.config.boolean_fields:
            value = params.get(field)
            if value in ("true", "false"):
                where = where.with_condition(field, Equals(field, value == "true"))

        for field in self.config.number_fields:
            exact = params.get(field)
            low = params.get(f"{field}Min")
            high = params.get(f"{field}Max")
            if exact:
                where = where.with_condition(field, Equals(field, int(exact)))
            if low or high:
                where = where.with_condition(
                    field,
                    Range(field, gte=int(low) if low else None, lte=int(high) if high else None),
                )

        for relation, relation_config in self.config.relations.items():
            for flag in relation_config.boolean_filters:
                value = params.get(flag)
                if value == "true":
                    where = where.with_condition(relation, RelationExists(relation, Quantifier.SOME))
                elif value == "false":
                    where = where.with_condition(relation, RelationExists(relation, Quantifier.NONE))
            for field in relation_config.searchable_fields:
                value = params.get(relation_search_param(relation, field))
                if value:
                    match = WhereClause({field: StringMatch(field, MatchOperator.CONTAINS, value)})
                    where = where.with_condition(relation, RelationExists(relation, Quantifier.SOME, match))

        all_of = parse_condition_list(params["and"]) if params.get("and") else None
        any_of = parse_condition_list(params["or"]) if params.get("or") else None
        where = replace(where, all_of=all_of, any_of=any_of)
        return None if where.is_empty() else where

    # ----- ordering -----

    def _parse_order_by(self, params: Mapping[str, str]) -> Tuple[OrderSpec, ...]:
        order_by = params.get("orderBy")
        if not order_by:
            if not self.config.default_order_by:
                return ()
            return (OrderSpec((self.config.default_order_by,), self.config.default_order_dir),)

        order_dir = params.get("orderDir") or self.config.default_order_dir.value
        fields = split_csv(order_by)
        if len(fields) == 1:
            directions = [order_dir.split(",")[0].strip() or SortDirection.ASC.value]
        else:
            directions = [d.strip() for d in order_dir.split(",")]
        specs: List[OrderSpec] = []
        for index, field in enumerate(fields):
            direction = directions[index] if index < len(directions) and directions[index] else "asc"
            specs.append(OrderSpec(tuple(field.split(".", 1)), SortDirection(direction)))
        return tuple(specs)

    # ----- pagination -----

    def _parse_pagination(self, params: Mapping[str, str]) -> Pagination:
        max_limit = self.config.max_limit
        page = int(params.get("page") or 1)
        limit = min(int(params.get("limit") or self.config.default_limit), max_limit)
        skip = params.get("skip")
        take = params.get("take")

        if skip or take:
            pagination = OffsetPagination(
                skip=int(skip) if skip else None,
                take=min(int(take), max_limit) if take else None,
            )
        else:
            pagination = OffsetPagination(skip=(page - 1) * limit, take=limit)

        cursor = params.get("cursor")
        if cursor:
            return CursorPagination(cursor=cursor, take=pagination.take)
        return pagination


# ----- selection -----


def parse_selection(params: Mapping[str, str]) -> Optional[Selection]:
    """``select`` wins over ``include`` when both are given."""
    if params.get("select"):
        return parse_select(params["select"])
    if params.get("include"):
        return parse_include(params["include"])
    return None


def parse_select(value: str) -> Selection:
    fields: List[str] = []
    nested: Dict[str, Tuple[List[str], bool]] = {}
    count = False
    for item in split_csv(value):
        if "." in item:
            relation, sub_field = item.split(".", 1)
            sub_fields, sub_count = nested.get(relation, ([], False))
            if sub_field == "_count":
                sub_count = True
            else:
                sub_fields.append(sub_field)
            nested[relation] = (sub_fields, sub_count)
        elif item == "_count":
            count = True
        else:
            fields.append(item)
    relations = {
        name: Selection(SelectionMode.SELECT, fields=tuple(sub_fields), count=sub_count)
        for name, (sub_fields, sub_count) in nested.items()
    }
    return Selection(SelectionMode.SELECT, fields=tuple(fields), relations=relations, count=count)


def parse_include(value: str) -> Selection:
    relations: Dict[str, Selection] = {}
    count = False
    for item in split_csv(value):
        if item == "_count":
            count = True
        elif ":" in item:
            relation, condition = item.split(":", 1)
            cond_field, _, raw = condition.partition("=")
            cond_value = {"true": True, "false": False}.get(raw, raw)
            where = WhereClause({cond_field: Equals(cond_field, cond_value)})
            relations[relation] = Selection(SelectionMode.INCLUDE, where=where)
        else:
            relations[item] = Selection(SelectionMode.INCLUDE)
    return Selection(SelectionMode.INCLUDE, relations=relations, count=count)


def translate(config: ModelConfig, params: Mapping[str, str]) -> FilterDescription:
    return QueryBuilder.from_params(params, config).build()
