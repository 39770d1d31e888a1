"""Users list endpoint: business-rule filters and computed fields."""

from typing import Any, Dict, List, Mapping

from app.query.conditions import (
    Equals,
    MatchOperator,
    Quantifier,
    RelationExists,
    StringMatch,
    WhereClause,
)
from app.query.handler import ListEndpoint
from app.query.model_config import Entity

from .schemas import UserQuery

_PUBLISHED = WhereClause({"published": Equals("published", True)})


def custom_user_filters(params: Mapping[str, str], where: WhereClause) -> WhereClause:
    """``hasPublishedPosts`` looks at published posts only; ``postTitleContains`` searches post titles."""
    has_published = params.get("hasPublishedPosts")
    if has_published == "true":
        where = where.with_condition("posts", RelationExists("posts", Quantifier.SOME, _PUBLISHED))
    elif has_published == "false":
        where = where.with_condition("posts", RelationExists("posts", Quantifier.NONE, _PUBLISHED))

    title = params.get("postTitleContains")
    if title:
        match = WhereClause({"title": StringMatch("title", MatchOperator.CONTAINS, title)})
        where = where.with_condition("posts", RelationExists("posts", Quantifier.SOME, match))
    return where


def display_name(user: Dict[str, Any]) -> str:
    if user.get("name"):
        return user["name"]
    return (user.get("email") or "").split("@")[0]


def add_display_names(users: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # Projections without name/email get no display name
    return [
        {**user, "displayName": display_name(user)} if ("name" in user or "email" in user) else user
        for user in users
    ]


USER_LIST = ListEndpoint(
    entity=Entity.USERS,
    query_schema=UserQuery,
    custom_filters=custom_user_filters,
    after_query=add_display_names,
)
