"""Posts list endpoint: author filters, default author inclusion, computed fields."""

from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional

from app.query.conditions import (
    Equals,
    FilterDescription,
    MatchOperator,
    Quantifier,
    RelationExists,
    Selection,
    SelectionMode,
    StringMatch,
    WhereClause,
)
from app.query.handler import ListEndpoint
from app.query.model_config import Entity

from .schemas import PostQuery

EXCERPT_LENGTH = 150

DEFAULT_AUTHOR_SELECTION = Selection(
    SelectionMode.INCLUDE,
    relations={"author": Selection(SelectionMode.SELECT, fields=("id", "name", "email"))},
)


def _author_match(field: str, condition) -> RelationExists:
    return RelationExists("author", Quantifier.SOME, WhereClause({field: condition}))


def custom_post_filters(params: Mapping[str, str], where: WhereClause) -> WhereClause:
    name = params.get("authorNameContains")
    if name:
        where = where.with_condition(
            "author", _author_match("name", StringMatch("name", MatchOperator.CONTAINS, name))
        )

    email = params.get("authorEmailContains")
    if email:
        where = where.with_condition(
            "author", _author_match("email", StringMatch("email", MatchOperator.CONTAINS, email))
        )

    exact_email = params.get("authorEmail")
    if exact_email:
        where = where.with_condition("author", _author_match("email", Equals("email", exact_email)))

    if params.get("publishedOnly") == "true":
        where = where.with_condition("published", Equals("published", True))
    return where


def include_author_by_default(description: FilterDescription) -> FilterDescription:
    if description.selection is not None:
        return description
    return replace(description, selection=DEFAULT_AUTHOR_SELECTION)


def excerpt(content: Optional[str]) -> Optional[str]:
    if not content:
        return None
    return content[:EXCERPT_LENGTH] + "..."


def word_count(content: Optional[str]) -> int:
    if not content:
        return 0
    return len(content.split(" "))


def add_computed_fields(posts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {**post, "excerpt": excerpt(post.get("content")), "wordCount": word_count(post.get("content"))}
        for post in posts
    ]


POST_LIST = ListEndpoint(
    entity=Entity.POSTS,
    query_schema=PostQuery,
    custom_filters=custom_post_filters,
    before_query=include_author_by_default,
    after_query=add_computed_fields,
)
