"""Async HTTP client for the listing API.

Parameters are validated with the same schemas the server uses before any
request is sent.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Type

import httpx
from pydantic import ValidationError

from app.api.v1.posts.schemas import PostQuery, PostResponse
from app.api.v1.users.schemas import UserQuery, UserResponse
from app.client.config import client_settings
from app.query.schemas import ErrorResponse, ListResponse, QueryModel, format_validation_errors

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        validation: Optional[List[Dict[str, str]]] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.validation = validation
        self.details = details

    @property
    def is_client_error(self) -> bool:
        return self.status is not None and 400 <= self.status < 500


def encode_params(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Query string values: JSON for objects and lists, lowercase booleans, empty values dropped."""
    encoded: Dict[str, str] = {}
    for key, value in (params or {}).items():
        if value is None or value == "":
            continue
        if isinstance(value, (dict, list)):
            encoded[key] = json.dumps(value)
        elif isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        else:
            encoded[key] = str(value)
    return encoded


def _check_params(schema: Type[QueryModel], params: Dict[str, str]) -> None:
    try:
        schema.model_validate(params)
    except ValidationError as e:
        raise ApiError("Invalid parameters", validation=format_validation_errors(e)) from e


class ApiClient:
    def __init__(self, base_url: Optional[str] = None, http: Optional[httpx.AsyncClient] = None) -> None:
        self.base_url = (base_url or client_settings.api_base_url).rstrip("/")
        self._http = http or httpx.AsyncClient()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def request(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        url = f"{self.base_url}{client_settings.api_prefix}{endpoint}"
        query = encode_params(params)
        logger.debug("GET %s %s", url, query)
        response = await self._http.get(url, params=query, headers={"Accept": "application/json"})

        if response.is_success:
            return response.json()

        try:
            body = ErrorResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            raise ApiError(f"HTTP {response.status_code}: {response.reason_phrase}", status=response.status_code)
        raise ApiError(
            body.error or f"HTTP {response.status_code}",
            status=response.status_code,
            validation=[item.model_dump() for item in body.validation] if body.validation else None,
            details=body.details,
        )

    async def get_users(self, params: Optional[Mapping[str, Any]] = None) -> ListResponse:
        query = encode_params(params)
        _check_params(UserQuery, query)
        return ListResponse.model_validate(await self.request("/users", query))

    async def get_posts(self, params: Optional[Mapping[str, Any]] = None) -> ListResponse:
        query = encode_params(params)
        _check_params(PostQuery, query)
        return ListResponse.model_validate(await self.request("/posts", query))

    async def get_user(self, user_id: str, params: Optional[Mapping[str, Any]] = None) -> UserResponse:
        return UserResponse.model_validate(await self.request(f"/users/{user_id}", params))

    async def get_post(self, post_id: str, params: Optional[Mapping[str, Any]] = None) -> PostResponse:
        return PostResponse.model_validate(await self.request(f"/posts/{post_id}", params))

    async def custom_query(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request(endpoint, params)
