"""
Image REST endpoints.

GET    /v1/images?url=        — Image bytes, loaded through the bounded loader.
GET    /v1/images/state?url=  — Load state: queued | loading | loaded | failed.
DELETE /v1/images/state?url=  — Forget a terminal state so the next request retries.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Response

from api.dependencies import get_image_loader
from media.loader import BoundedImageLoader

router = APIRouter(prefix="/v1/images", tags=["images"])


@router.get("")
async def get_image(
    url: str = Query(..., min_length=1),
    loader: BoundedImageLoader = Depends(get_image_loader),
) -> Response:
    handle = await loader.load(url)
    return Response(
        content=handle.data,
        media_type=handle.content_type,
        headers={"Cache-Control": "public, max-age=86400"},
    )


@router.get("/state")
async def image_state(
    url: str = Query(..., min_length=1),
    loader: BoundedImageLoader = Depends(get_image_loader),
) -> dict[str, Any]:
    state = loader.state(url)
    if state is None:
        return {"url": url, "status": None, "view": None, "attempts": 0, "error": None, "size": None}
    return {
        "url": url,
        "status": state.status.value,
        "view": state.status.view_state,
        "attempts": state.attempts,
        "error": state.error,
        "size": state.handle.size if state.handle else None,
    }


@router.delete("/state")
async def evict_image(
    url: str = Query(..., min_length=1),
    loader: BoundedImageLoader = Depends(get_image_loader),
) -> dict[str, Any]:
    return {"url": url, "evicted": loader.evict(url)}
