"""Generic list / detail request handling shared by every entity router.

A list request runs through: validate -> translate -> custom filters ->
before-query hook -> find_many -> after-query hook -> optional count ->
response. Hooks receive values and return new ones.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import QueryValidationError

from . import persistence
from .builder import QueryBuilder, parse_selection
from .conditions import FilterDescription, WhereClause
from .model_config import Entity, ModelConfig, get_model_config
from .schemas import BaseQuery, SelectionQuery, validate_query

logger = logging.getLogger(__name__)

CustomFilters = Callable[[Mapping[str, str], WhereClause], WhereClause]
BeforeQuery = Callable[[FilterDescription], FilterDescription]
AfterQuery = Callable[[List[Dict[str, Any]]], List[Dict[str, Any]]]


@dataclass(frozen=True)
class ListEndpoint:
    """Everything a list endpoint needs besides the request itself."""

    entity: Entity
    query_schema: Type[BaseQuery]
    custom_filters: Optional[CustomFilters] = None
    before_query: Optional[BeforeQuery] = None
    after_query: Optional[AfterQuery] = None

    @property
    def config(self) -> ModelConfig:
        return get_model_config(self.entity)

    @property
    def label(self) -> str:
        return self.entity.value


def validation_error_response(error: QueryValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"error": error.message, "validation": error.errors},
    )


def server_error_response(endpoint: ListEndpoint, error: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": f"Failed to fetch {endpoint.label}", "details": str(error) or type(error).__name__},
    )


def build_description(endpoint: ListEndpoint, params: Mapping[str, str]) -> FilterDescription:
    """Translate and run the entity's custom filter and before-query hooks."""
    description = QueryBuilder.from_params(params, endpoint.config).build()

    if endpoint.custom_filters is not None:
        where = endpoint.custom_filters(params, description.where or WhereClause())
        description = description.with_where(where)

    if endpoint.before_query is not None:
        description = endpoint.before_query(description)
    return description


def build_pagination(query: BaseQuery, description: FilterDescription, total_count: Optional[int]) -> Dict[str, Any]:
    pagination: Dict[str, Any] = {"page": query.page, "limit": query.limit}
    if description.skip is not None:
        pagination["skip"] = description.skip
    if description.take is not None:
        pagination["take"] = description.take
    if total_count is not None:
        pagination["totalCount"] = total_count
        pagination["totalPages"] = math.ceil(total_count / query.limit)
    return pagination


async def handle_list_request(
    db: AsyncSession,
    endpoint: ListEndpoint,
    params: Mapping[str, str],
) -> JSONResponse:
    try:
        query = validate_query(endpoint.query_schema, params)
    except QueryValidationError as e:
        logger.info("Rejected %s query: %s", endpoint.label, e.errors)
        return validation_error_response(e)

    try:
        description = build_description(endpoint, params)
        logger.debug("Querying %s with %s", endpoint.label, description.to_dict())

        rows = await persistence.find_many(db, endpoint.entity, description)
        if endpoint.after_query is not None:
            rows = endpoint.after_query(rows)

        total_count = None
        if query.include_total_count:
            total_count = await persistence.count(db, endpoint.entity, description.where)
    except Exception as e:
        logger.exception("Error fetching %s", endpoint.label)
        return server_error_response(endpoint, e)

    return JSONResponse(
        content=jsonable_encoder(
            {"data": rows, "pagination": build_pagination(query, description, total_count)}
        )
    )


async def handle_detail_request(
    db: AsyncSession,
    endpoint: ListEndpoint,
    record_id: str,
    params: Mapping[str, str],
) -> JSONResponse:
    """Single record by id; honours ``select`` / ``include`` and the entity hooks."""
    try:
        validate_query(SelectionQuery, params)
    except QueryValidationError as e:
        logger.info("Rejected %s detail query: %s", endpoint.label, e.errors)
        return validation_error_response(e)

    try:
        description = FilterDescription(selection=parse_selection(params))
        if endpoint.before_query is not None:
            description = endpoint.before_query(description)
        row = await persistence.find_unique(db, endpoint.entity, record_id, description.selection)
        if row is not None and endpoint.after_query is not None:
            row = endpoint.after_query([row])[0]
    except Exception as e:
        logger.exception("Error fetching %s %s", endpoint.label, record_id)
        return server_error_response(endpoint, e)

    if row is None:
        noun = endpoint.label[:-1].capitalize()
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": f"{noun} not found"})
    return JSONResponse(content=jsonable_encoder(row))
