"""Server-sent event streams of realtime snapshots.

Each stream subscribes to the gateway and forwards every delivered
snapshot as one ``data:`` line: the whole ordered collection, or a single
document (``null`` once deleted).
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import StreamingResponse

from academia.exceptions import RecordNotFoundError
from academia.gateway import CollectionGateway, RemoteGateway, Unsubscribe
from academia.realtime.feed import COLLECTIONS
from academia.utils.dependencies import get_gateway

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0

router = APIRouter(tags=["Realtime"])


def _collection(gateway: RemoteGateway, name: str) -> CollectionGateway:
    if name not in COLLECTIONS:
        raise RecordNotFoundError("Collection", name)
    return getattr(gateway, name)


def _format_event(payload: Any) -> str:
    return f"data: {json.dumps(jsonable_encoder(payload))}\n\n"


async def snapshot_events(
    subscribe: Callable[[Callable[[Any], None]], Awaitable[Unsubscribe]],
    request: Optional[Request] = None,
    limit: Optional[int] = None,
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Yield SSE frames for every snapshot a subscription delivers.

    Args:
        subscribe: Gateway subscribe call taking the delivery callback.
        request: Request whose disconnect ends the stream.
        limit: Stop after this many snapshots.
        keepalive: Idle seconds before a comment frame is sent.
    """
    queue: asyncio.Queue = asyncio.Queue()
    unsubscribe = await subscribe(queue.put_nowait)
    sent = 0
    try:
        while limit is None or sent < limit:
            if request is not None and await request.is_disconnected():
                break
            try:
                payload = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield _format_event(payload)
            sent += 1
    finally:
        unsubscribe()
        logger.debug("Snapshot stream closed", extra={"sent": sent})


@router.get("/{collection}/stream")
async def stream_collection(
    collection: str,
    request: Request,
    limit: Optional[int] = Query(default=None, ge=1, description="Stop after N snapshots"),
    gateway: RemoteGateway = Depends(get_gateway),
) -> StreamingResponse:
    """Stream the whole collection now and after every change."""
    target = _collection(gateway, collection)
    return StreamingResponse(
        snapshot_events(target.subscribe, request, limit),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@router.get("/{collection}/{record_id}/stream")
async def stream_document(
    collection: str,
    record_id: str,
    request: Request,
    limit: Optional[int] = Query(default=None, ge=1, description="Stop after N snapshots"),
    gateway: RemoteGateway = Depends(get_gateway),
) -> StreamingResponse:
    """Stream one document now and after every change; ``null`` once deleted."""
    target = _collection(gateway, collection)

    async def subscribe(callback: Callable[[Any], None]) -> Unsubscribe:
        return await target.subscribe_one(record_id, callback)

    return StreamingResponse(
        snapshot_events(subscribe, request, limit),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
