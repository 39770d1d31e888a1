"""Cached reads of users and posts, keyed by entity and parameters."""

from typing import Any, Mapping, Optional

from . import query_keys
from .api_client import ApiClient
from .query_client import QueryClient


async def fetch_users(
    api: ApiClient,
    cache: QueryClient,
    params: Optional[Mapping[str, Any]] = None,
    stale_time: Optional[float] = None,
):
    return await cache.fetch_query(query_keys.users.list(params), lambda: api.get_users(params), stale_time)


async def fetch_user(
    api: ApiClient,
    cache: QueryClient,
    user_id: str,
    params: Optional[Mapping[str, Any]] = None,
):
    return await cache.fetch_query(
        query_keys.users.detail(user_id, params), lambda: api.get_user(user_id, params)
    )


async def fetch_posts(
    api: ApiClient,
    cache: QueryClient,
    params: Optional[Mapping[str, Any]] = None,
    stale_time: Optional[float] = None,
):
    return await cache.fetch_query(query_keys.posts.list(params), lambda: api.get_posts(params), stale_time)


async def fetch_post(
    api: ApiClient,
    cache: QueryClient,
    post_id: str,
    params: Optional[Mapping[str, Any]] = None,
):
    return await cache.fetch_query(
        query_keys.posts.detail(post_id, params), lambda: api.get_post(post_id, params)
    )


async def prefetch_users(api: ApiClient, cache: QueryClient, params: Optional[Mapping[str, Any]] = None) -> None:
    await cache.prefetch_query(query_keys.users.list(params), lambda: api.get_users(params))


async def prefetch_posts(api: ApiClient, cache: QueryClient, params: Optional[Mapping[str, Any]] = None) -> None:
    await cache.prefetch_query(query_keys.posts.list(params), lambda: api.get_posts(params))


def invalidate_users(cache: QueryClient, user_id: Optional[str] = None) -> int:
    """All user queries, or only the detail queries of one user."""
    if user_id is None:
        return cache.invalidate_queries(query_keys.users.all)
    return cache.invalidate_queries((*query_keys.users.details(), user_id))


def invalidate_posts(cache: QueryClient, post_id: Optional[str] = None) -> int:
    if post_id is None:
        return cache.invalidate_queries(query_keys.posts.all)
    return cache.invalidate_queries((*query_keys.posts.details(), post_id))
