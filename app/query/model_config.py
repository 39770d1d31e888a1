"""Per-entity filter configuration and the registry of supported entities."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Tuple

from .conditions import SortDirection


class Entity(str, Enum):
    USERS = "users"
    POSTS = "posts"


@dataclass(frozen=True)
class RelationConfig:
    # Related-model fields searchable via <relation><Field>Contains
    searchable_fields: Tuple[str, ...] = ()
    # Boolean existence filters, e.g. hasPosts=true -> at least one related row
    boolean_filters: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ModelConfig:
    """Which fields accept which filter operators, plus sort and page defaults.

    Field names are the camelCase names exposed over HTTP.
    """

    string_fields: Tuple[str, ...] = ()
    date_fields: Tuple[str, ...] = ()
    boolean_fields: Tuple[str, ...] = ()
    number_fields: Tuple[str, ...] = ()
    relations: Mapping[str, RelationConfig] = field(default_factory=dict)
    default_order_by: str = "createdAt"
    default_order_dir: SortDirection = SortDirection.ASC
    default_limit: int = 10
    max_limit: int = 100

    def __post_init__(self) -> None:
        if not (self.max_limit >= self.default_limit >= 1):
            raise ValueError(
                f"Invalid page size limits: max_limit={self.max_limit}, default_limit={self.default_limit}"
            )


def date_param_prefix(field_name: str) -> str:
    """``createdAt`` is filtered via ``createdAfter`` / ``createdBefore``."""
    if field_name.endswith("At") and len(field_name) > 2:
        return field_name[:-2]
    return field_name


def relation_search_param(relation: str, field_name: str) -> str:
    return f"{relation}{field_name[:1].upper()}{field_name[1:]}Contains"


# Fields are evaluated in declaration order, so later entries overwrite
# earlier ones that target the same key.

USER_CONFIG = ModelConfig(
    string_fields=("email", "name"),
    date_fields=("createdAt", "updatedAt"),
    relations={
        "posts": RelationConfig(
            searchable_fields=("title", "content"),
            boolean_filters=("hasPublishedPosts", "hasPosts"),
        ),
    },
    default_order_by="createdAt",
    default_order_dir=SortDirection.DESC,
    default_limit=10,
    max_limit=100,
)

POST_CONFIG = ModelConfig(
    string_fields=("title", "content"),
    boolean_fields=("published",),
    date_fields=("createdAt", "updatedAt"),
    relations={
        "author": RelationConfig(
            searchable_fields=("name", "email"),
            boolean_filters=("hasAuthor",),
        ),
    },
    default_order_by="createdAt",
    default_order_dir=SortDirection.DESC,
    default_limit=20,
    max_limit=100,
)

_MODEL_CONFIGS: Dict[Entity, ModelConfig] = {
    Entity.USERS: USER_CONFIG,
    Entity.POSTS: POST_CONFIG,
}


def get_model_config(entity: Entity) -> ModelConfig:
    return _MODEL_CONFIGS[entity]
