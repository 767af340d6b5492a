"""
Broadcast REST endpoints.

GET  /v1/broadcast?home=&away=   — Broadcast text for a home/away pair (null when unknown).
GET  /v1/broadcast/correlated    — Scraped candidates with the fixture each one maps to.
POST /v1/broadcast/refresh       — Re-scrape now.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_broadcast_service
from broadcast.service import BroadcastService

router = APIRouter(prefix="/v1/broadcast", tags=["broadcast"])


@router.get("")
async def broadcast_info(
    home: str = Query(..., min_length=1),
    away: str = Query(..., min_length=1),
    broadcast: BroadcastService = Depends(get_broadcast_service),
) -> dict[str, Any]:
    text = await broadcast.find_broadcast_info(home, away)
    return {"home": home, "away": away, "broadcast": text}


@router.get("/correlated")
async def correlated(
    broadcast: BroadcastService = Depends(get_broadcast_service),
) -> dict[str, Any]:
    results = await broadcast.correlated_candidates()
    return {
        "count": len(results),
        "matched": sum(1 for r in results if r.matched),
        "results": [r.model_dump(mode="json") for r in results],
    }


@router.post("/refresh")
async def refresh(
    broadcast: BroadcastService = Depends(get_broadcast_service),
) -> dict[str, Any]:
    count = await broadcast.refresh()
    return {"source": broadcast.source.source_name, "candidates": count}
