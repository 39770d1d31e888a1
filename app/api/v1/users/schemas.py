"""Users list query parameters and response shape."""

from datetime import datetime
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.query.model_config import POST_CONFIG, USER_CONFIG
from app.query.schemas import BaseQuery, BooleanFlag, iso_datetime


class UserQuery(BaseQuery):
    # Own dates plus those of related posts
    condition_date_fields: ClassVar[FrozenSet[str]] = frozenset(USER_CONFIG.date_fields + POST_CONFIG.date_fields)

    limit: int = Field(10, ge=1, le=100)

    # String field filters
    email: Optional[str] = None
    name: Optional[str] = None
    email_contains: Optional[str] = None
    email_starts_with: Optional[str] = None
    email_ends_with: Optional[str] = None
    name_contains: Optional[str] = None
    name_starts_with: Optional[str] = None
    name_ends_with: Optional[str] = None

    # Date filters
    created_after: Optional[str] = None
    created_before: Optional[str] = None
    updated_after: Optional[str] = None
    updated_before: Optional[str] = None

    # Relation filters
    has_published_posts: Optional[BooleanFlag] = None
    has_posts: Optional[BooleanFlag] = None
    post_title_contains: Optional[str] = None
    posts_title_contains: Optional[str] = None
    posts_content_contains: Optional[str] = None

    check_dates = field_validator(
        "created_after", "created_before", "updated_after", "updated_before"
    )(iso_datetime)


class UserResponse(BaseModel):
    """One user as returned by the API. Which keys are present depends on ``select`` / ``include``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = None
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    display_name: Optional[str] = None
    posts: Optional[List[Any]] = None
    count: Optional[Dict[str, int]] = Field(None, alias="_count")
