"""
Proxy API Routes
JSON endpoint the viewer calls with {url}
"""

from typing import Optional

from fastapi import APIRouter, Request, Response, Query
from fastapi.responses import JSONResponse
from loguru import logger

from ..services.errors import FailureReason
from ..services.models import TargetRequest

router = APIRouter()

FAILURE_STATUS = {
    FailureReason.INVALID_URL: 400,
    FailureReason.ALL_FALLBACKS_EXHAUSTED: 503,
    FailureReason.INTERNAL_ERROR: 500,
}


async def _proxy(request: Request, url: Optional[str]) -> JSONResponse:
    if not isinstance(url, str) or not url.strip():
        return JSONResponse(status_code=400, content={"error": "URL is required"})

    proxy_service = request.app.state.proxy_service
    result = await proxy_service.handle(TargetRequest(raw_input=url))

    if result.ok:
        return JSONResponse(content=result.to_dict())

    status_code = FAILURE_STATUS.get(result.reason, 500)
    logger.info(f"Proxy request for {url!r} failed ({status_code}): {result.detail}")
    return JSONResponse(status_code=status_code, content=result.to_dict())


@router.options("/")
async def proxy_options():
    """CORS preflight"""
    return Response(status_code=200)


@router.get("/")
async def proxy_get(
    request: Request,
    url: Optional[str] = Query(None, description="URL to proxy")
):
    """Proxy a page, URL in the query string"""
    return await _proxy(request, url)


@router.post("/")
async def proxy_post(
    request: Request,
    url: Optional[str] = Query(None, description="URL to proxy")
):
    """Proxy a page, URL in a JSON body {"url": ...} or the query string"""

    if url is None:
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            url = payload.get("url")

    return await _proxy(request, url)
