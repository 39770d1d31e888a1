from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.session import get_db
from app.query.handler import handle_detail_request, handle_list_request
from app.query.schemas import ErrorResponse

from .service import POST_LIST

router = APIRouter(prefix=f"{settings.api_prefix}/posts", tags=["posts"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid query parameters"},
    500: {"model": ErrorResponse, "description": "Query failed"},
}


@router.get("", responses=_ERROR_RESPONSES)
async def list_posts(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """
    List posts with filtering, ordering and pagination driven by query parameters.

    - **title / titleContains / contentContains**: string filters (case-insensitive for Contains)
    - **published / publishedOnly**: `true` / `false`
    - **hasAuthor, authorNameContains, authorEmailContains, authorEmail**: author filters
    - Author (id, name, email) is included unless `select` or `include` is given
    - **page, limit** or **skip, take** or **cursor**: pagination
    - **includeTotalCount=true**: adds totalCount and totalPages
    """
    return await handle_list_request(db, POST_LIST, dict(request.query_params))


@router.get("/{post_id}", responses={**_ERROR_RESPONSES, 404: {"model": ErrorResponse}})
async def get_post(
    post_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    return await handle_detail_request(db, POST_LIST, post_id, dict(request.query_params))
