import asyncio
import json

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import StreamingResponse

from clinicbook.scheduling import realtime

router = APIRouter(tags=['realtime'])

WATCHED_TABLES = {'bookings', 'doctor_schedules'}
KEEPALIVE_SECONDS = 15.0


async def stream_changes(
    request: Request,
    table: str,
    change_filter: str | None,
    keepalive_seconds: float = KEEPALIVE_SECONDS,
):
    """Server-sent events for one table; the subscription lives exactly as long as the stream."""
    loop = asyncio.get_running_loop()
    events: asyncio.Queue = asyncio.Queue()

    # Writers publish from worker threads, so hand payloads over to the event loop.
    def enqueue(payload) -> None:
        loop.call_soon_threadsafe(events.put_nowait, payload)

    with realtime.change_feed.subscribe(table, change_filter, enqueue):
        yield ': subscribed\n\n'
        while not await request.is_disconnected():
            try:
                payload = await asyncio.wait_for(events.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                yield ': keepalive\n\n'
                continue
            yield f"event: {payload['event']}\ndata: {json.dumps(jsonable_encoder(payload))}\n\n"


@router.get('/{table}')
async def subscribe_to_table(
    request: Request,
    table: str,
    change_filter: str | None = Query(default=None, alias='filter'),
):
    if table not in WATCHED_TABLES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Unknown table.')

    try:
        realtime.parse_filter(change_filter)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return StreamingResponse(
        stream_changes(request, table, change_filter),
        media_type='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
    )
