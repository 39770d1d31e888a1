from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.session import get_db
from app.query.handler import handle_detail_request, handle_list_request
from app.query.schemas import ErrorResponse

from .service import USER_LIST

router = APIRouter(prefix=f"{settings.api_prefix}/users", tags=["users"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid query parameters"},
    500: {"model": ErrorResponse, "description": "Query failed"},
}


@router.get("", responses=_ERROR_RESPONSES)
async def list_users(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """
    List users with filtering, ordering and pagination driven by query parameters.

    - **emailContains / nameContains / ...StartsWith / ...EndsWith**: case-insensitive string filters
    - **createdAfter / createdBefore**: ISO-8601 datetime bounds (inclusive)
    - **hasPosts / hasPublishedPosts**: `true` / `false` relation existence
    - **page, limit** or **skip, take** or **cursor**: pagination
    - **includeTotalCount=true**: adds totalCount and totalPages
    """
    return await handle_list_request(db, USER_LIST, dict(request.query_params))


@router.get("/{user_id}", responses={**_ERROR_RESPONSES, 404: {"model": ErrorResponse}})
async def get_user(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    return await handle_detail_request(db, USER_LIST, user_id, dict(request.query_params))
