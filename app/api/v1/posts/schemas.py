"""Posts list query parameters and response shape."""

from datetime import datetime
from typing import Any, ClassVar, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.query.model_config import POST_CONFIG, USER_CONFIG
from app.query.schemas import BaseQuery, BooleanFlag, iso_datetime


class PostQuery(BaseQuery):
    # Own dates plus those of the author
    condition_date_fields: ClassVar[FrozenSet[str]] = frozenset(POST_CONFIG.date_fields + USER_CONFIG.date_fields)

    limit: int = Field(20, ge=1, le=100)

    # String field filters
    title: Optional[str] = None
    content: Optional[str] = None
    title_contains: Optional[str] = None
    content_contains: Optional[str] = None
    title_starts_with: Optional[str] = None
    title_ends_with: Optional[str] = None

    # Boolean filters
    published: Optional[BooleanFlag] = None

    # Date filters
    created_after: Optional[str] = None
    created_before: Optional[str] = None
    updated_after: Optional[str] = None
    updated_before: Optional[str] = None

    # Relation filters
    has_author: Optional[BooleanFlag] = None
    author_name_contains: Optional[str] = None
    author_email_contains: Optional[str] = None
    author_email: Optional[EmailStr] = None

    # Business rules
    published_only: Optional[BooleanFlag] = None

    check_dates = field_validator(
        "created_after", "created_before", "updated_after", "updated_before"
    )(iso_datetime)


class PostResponse(BaseModel):
    """One post as returned by the API. Which keys are present depends on ``select`` / ``include``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    published: Optional[bool] = None
    author_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    excerpt: Optional[str] = None
    word_count: Optional[int] = None
    author: Optional[Dict[str, Any]] = None
