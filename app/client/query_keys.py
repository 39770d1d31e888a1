"""Query key factories.

Keys are tuples so that a shorter key is a prefix of every key below it:
``("users",)`` covers ``("users", "list", ...)`` and ``("users", "detail", ...)``.
"""

import json
from typing import Any, Mapping, Optional, Tuple

QueryKey = Tuple[Any, ...]


def normalize_params(params: Optional[Mapping[str, Any]]) -> Optional[Tuple[Tuple[str, Any], ...]]:
    """Hashable, order-independent form of a params mapping; empty values dropped."""
    if not params:
        return None
    items = []
    for key in sorted(params):
        value = params[key]
        if value is None or value == "":
            continue
        if isinstance(value, (dict, list)):
            value = json.dumps(value, sort_keys=True)
        items.append((key, value))
    return tuple(items) or None


class EntityKeys:
    def __init__(self, entity: str) -> None:
        self.entity = entity

    @property
    def all(self) -> QueryKey:
        return (self.entity,)

    def lists(self) -> QueryKey:
        return (*self.all, "list")

    def list(self, params: Optional[Mapping[str, Any]] = None) -> QueryKey:
        return (*self.lists(), normalize_params(params))

    def details(self) -> QueryKey:
        return (*self.all, "detail")

    def detail(self, record_id: str, params: Optional[Mapping[str, Any]] = None) -> QueryKey:
        return (*self.details(), record_id, normalize_params(params))


users = EntityKeys("users")
posts = EntityKeys("posts")


def custom(entity: str, params: Optional[Mapping[str, Any]] = None) -> QueryKey:
    return (entity, normalize_params(params))
