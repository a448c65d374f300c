"""Same-origin proxy routes.

Routes:
    GET /uploads/{path}                          — Stream a stored upload (immutable cache)
    GET /api/applications/project/{project_id}   — Forward to the applications API
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse, Response

from koihire.api.deps import get_proxy_service
from koihire.services.proxy_service import ProxyService

router = APIRouter(tags=["Proxy"])


@router.get("/uploads/{path:path}", summary="Proxy an uploaded file", response_class=Response)
async def proxy_upload(
    path: str,
    proxy: ProxyService = Depends(get_proxy_service),
) -> Response:
    file = await proxy.fetch_upload(path)
    return Response(
        content=file.content,
        media_type=file.content_type,
        headers={"Cache-Control": file.cache_control},
    )


@router.get(
    "/api/applications/project/{project_id}",
    summary="Proxy a project's applications",
    response_class=JSONResponse,
)
async def proxy_project_applications(
    project_id: str,
    request: Request,
    authorization: str | None = Header(default=None),
    proxy: ProxyService = Depends(get_proxy_service),
) -> JSONResponse:
    """Upstream status and JSON body are republished unchanged."""
    result = await proxy.fetch_project_applications(
        project_id,
        authorization,
        query=list(request.query_params.multi_items()),
    )
    return JSONResponse(status_code=result.status_code, content=result.body)
