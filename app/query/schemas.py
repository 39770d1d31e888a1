"""Query parameter and response schemas shared by every list endpoint."""

from typing import Any, ClassVar, Dict, FrozenSet, List, Literal, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from app.core.exceptions import QueryValidationError

from .parser import ConditionParseError, check_date_values, parse_condition_list, parse_iso_datetime, split_csv

BooleanFlag = Literal["true", "false"]

QueryT = TypeVar("QueryT", bound="QueryModel")


class QueryModel(BaseModel):
    """Parameters arrive camelCase; unknown parameters are ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SelectionQuery(QueryModel):
    select: Optional[str] = Field(None, description="Comma-separated fields; relation.field for nested")
    include: Optional[str] = Field(None, description="Comma-separated relations, _count, or relation:field=value")

    @field_validator("include")
    @classmethod
    def check_include(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        for item in split_csv(value):
            if ":" in item:
                relation, _, condition = item.partition(":")
                cond_field, eq, _ = condition.partition("=")
                if not relation or not cond_field or not eq:
                    raise ValueError(f"Expected relation:field=value, got {item!r}")
        return value


class BaseQuery(SelectionQuery):
    """Parameters accepted by every list endpoint."""

    # Fields whose values in JSON conditions must be ISO datetimes
    condition_date_fields: ClassVar[FrozenSet[str]] = frozenset()

    distinct: Optional[str] = None

    # Pagination
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    skip: Optional[int] = Field(None, ge=0)
    take: Optional[int] = Field(None, ge=1, le=100)
    cursor: Optional[str] = Field(None, min_length=1)
    include_total_count: bool = False

    # Ordering
    order_by: Optional[str] = None
    order_dir: Optional[str] = None

    # Composite conditions, JSON arrays
    and_: Optional[str] = Field(None, alias="and")
    or_: Optional[str] = Field(None, alias="or")

    @field_validator("include_total_count", mode="before")
    @classmethod
    def check_flag(cls, value: Any) -> Any:
        if isinstance(value, str) and value not in ("true", "false"):
            raise ValueError("Expected 'true' or 'false'")
        return value

    @field_validator("order_dir")
    @classmethod
    def check_order_dir(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        for direction in value.split(","):
            if direction.strip() and direction.strip() not in ("asc", "desc"):
                raise ValueError(f"Expected 'asc' or 'desc', got {direction.strip()!r}")
        return value

    @field_validator("and_", "or_")
    @classmethod
    def check_conditions(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            check_date_values(parse_condition_list(value), cls.condition_date_fields)
        except ConditionParseError as e:
            raise ValueError(str(e)) from e
        return value


def iso_datetime(value: Optional[str]) -> Optional[str]:
    """Field validator body for ``...After`` / ``...Before`` parameters."""
    if value is None:
        return value
    parse_iso_datetime(value)
    return value


# ----- Responses -----


class ValidationErrorItem(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
    validation: Optional[List[ValidationErrorItem]] = None


class PaginationInfo(BaseModel):
    page: int
    limit: int
    skip: Optional[int] = None
    take: Optional[int] = None
    total_count: Optional[int] = Field(None, alias="totalCount")
    total_pages: Optional[int] = Field(None, alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)


class ListResponse(BaseModel):
    data: List[Dict[str, Any]]
    pagination: PaginationInfo


# ----- Helpers -----


def format_validation_errors(error: ValidationError) -> List[Dict[str, str]]:
    return [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in error.errors()
    ]


def validate_query(schema: Type[QueryT], params: Mapping[str, Any]) -> QueryT:
    """Validate raw parameters, raising QueryValidationError with field-level errors."""
    try:
        return schema.model_validate(dict(params))
    except ValidationError as e:
        raise QueryValidationError(format_validation_errors(e)) from e
