"""FastAPI route definitions for the shortlink REST API.

API Endpoint Overview
=====================
::
    GET  /healthy
        └─ "ok" (200)

    POST /shorten
        ├─ ShortenRequest (request body)
        └─ ShortenResponse (200) or 400/500

    GET  /stats/:short_code
        └─ StatsResponse (200) or 404/500

    GET  /:short_code
        └─ 301 Redirect (never fails; unknown codes go to <website>/<code>)

Request Flow Diagram
====================
::
    ┌─────────────┐
    │  HTTP       │
    │  Request    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate &  │
    │ Parse       │
    │ (Pydantic)  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Inject      │
    │ Request &   │
    │ App Context │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Resolution  │
    │ Service     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ HTTP        │
    │ Response    │
    └─────────────┘

Key Behaviours
===============
- ``/healthy`` is declared before the catch-all ``/{short_code}`` route.
- Service exceptions are mapped to HTTP status codes here:
  LinkNotFoundError -> 404, StoreUnavailableError -> 500.
- Redirects use 301 and keep the caller's query string.
- The ``Location`` header is percent-encoded by Starlette: characters outside
  the URL-safe set (``{``, ``}``, ``|``, spaces) are escaped, so the stored
  target is not sent byte for byte.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse

from shortlink.dependencies import RequestContext, get_request_context, get_resolution_service
from shortlink.exceptions import LinkNotFoundError, StoreUnavailableError
from shortlink.schemas import ShortenRequest, ShortenResponse, StatsResponse
from shortlink.service import ResolutionService

__all__ = ["router"]

router = APIRouter()


@router.get("/healthy", tags=["health"])
async def healthy() -> str:
    return "ok"


@router.post("/shorten", response_model=ShortenResponse, tags=["links"])
async def shorten(
    payload: ShortenRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: ResolutionService = Depends(get_resolution_service),
) -> ShortenResponse:
    ctx.logger.info(
        f"Shorten requested: {payload.long_url}",
        extra={"operation": "shorten", "long_url": payload.long_url, "diy_domain": payload.diy_domain},
    )

    try:
        short_url = await service.create(payload.long_url, payload.diy_domain)
    except StoreUnavailableError as exc:
        ctx.logger.error(
            f"Shorten failed: {exc}",
            extra={"operation": "shorten", "error": str(exc), "duration_ms": ctx.get_duration()},
        )
        raise HTTPException(status_code=500, detail="Failed to save short URL") from exc

    ctx.logger.info(
        f"Shortened {payload.long_url} -> {short_url}",
        extra={"operation": "shorten", "short_url": short_url, "duration_ms": ctx.get_duration()},
    )
    return ShortenResponse(short_url=short_url)


@router.get("/stats/{short_code}", response_model=StatsResponse, tags=["links"])
async def stats(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ResolutionService = Depends(get_resolution_service),
) -> StatsResponse:
    ctx.logger.info(f"Stats requested for short code: {short_code}")
    try:
        link_stats = await service.stats(short_code)
    except LinkNotFoundError as exc:
        ctx.logger.warning(f"Stats not found for short code: {short_code}")
        raise HTTPException(status_code=404, detail="short URL not found") from exc
    except StoreUnavailableError as exc:
        ctx.logger.error(f"Stats lookup failed for {short_code}: {exc}")
        raise HTTPException(status_code=500, detail="Failed to retrieve short URL") from exc

    return StatsResponse.from_stats(link_stats)


@router.get("/{short_code}", tags=["redirect"])
async def redirect(
    short_code: str,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    service: ResolutionService = Depends(get_resolution_service),
) -> RedirectResponse:
    target = await service.resolve(short_code, request.url.query)
    ctx.logger.info(
        f"Redirect {short_code} -> {target}",
        extra={
            "operation": "redirect",
            "short_code": short_code,
            "target_url": target,
            "duration_ms": ctx.get_duration(),
        },
    )
    return RedirectResponse(url=target, status_code=301)
