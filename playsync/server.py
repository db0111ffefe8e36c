import asyncio
import logging
from typing import Optional
from fastapi import Depends, FastAPI, HTTPException, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from .models import EVENT_ADAPTER, StatusResponse
from .notifier import Subscription
from .state import SessionStore

logger = logging.getLogger(__name__)

app = FastAPI(title="Playback Sync")
store: Optional[SessionStore] = None

# WebSocket close codes
WS_INTERNAL_ERROR = 1011
WS_TRY_AGAIN_LATER = 1013

def get_store() -> SessionStore:
    if not store:
        raise HTTPException(status_code=503, detail="Session store not ready")
    return store

@app.post("/")
async def handle_sync_event(request: Request, sessions: SessionStore = Depends(get_store)):
    try:
        event = EVENT_ADAPTER.validate_json(await request.body())
    except ValidationError as e:
        logger.debug(f"Rejected malformed event: {e}")
        raise RequestValidationError(e.errors(include_url=False))

    sessions.apply(event)
    return Response(status_code=200)

@app.get("/api/status", response_model=StatusResponse)
@app.get("/api/start_time", response_model=StatusResponse, include_in_schema=False)
def status(sessions: SessionStore = Depends(get_store)):
    return sessions.status()

@app.get("/healthz")
def healthz():
    if not store:
        return {"status": "starting"}
    return {"status": "ok"}

@app.get("/metrics", response_class=PlainTextResponse)
def metrics():
    # Simple prometheus-style text format
    if not store:
        return ""

    snap = store.snapshot()
    lines = [
        f'playback_sync_session_id {snap.id}',
        f'playback_sync_session_active {int(snap.filename is not None)}',
        f'playback_sync_start_time_window_size {store.window_size()}',
        f'playback_sync_events_accepted_total {store.accepted_events}',
        f'playback_sync_events_rejected_total {store.rejected_events}',
        f'playback_sync_subscribers {len(store.notifier)}'
    ]
    return "\n".join(lines)

async def wait_for_close(websocket: WebSocket):
    # Clients never send anything meaningful; drain until they close
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return

async def push_updates(websocket: WebSocket, sessions: SessionStore, sub: Subscription):
    async for _ in sub:
        update = sessions.live_update()
        await websocket.send_text(update.model_dump_json())

@app.websocket("/ws")
async def live_updates(websocket: WebSocket):
    sessions = store
    if not sessions:
        await websocket.close(code=WS_TRY_AGAIN_LATER)
        return

    sub = sessions.subscribe()
    await websocket.accept()
    pusher = asyncio.create_task(push_updates(websocket, sessions, sub))
    receiver = asyncio.create_task(wait_for_close(websocket))
    try:
        await asyncio.wait({pusher, receiver}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        sessions.unsubscribe(sub)
        for task in (pusher, receiver):
            task.cancel()
        await asyncio.gather(pusher, receiver, return_exceptions=True)

    if receiver.cancelled() and not pusher.cancelled():
        error = pusher.exception()
        # A failed send means the client is already gone
        if error is not None and not isinstance(error, (WebSocketDisconnect, OSError)):
            logger.error(f"Live update push failed, closing WebSocket: {error}", exc_info=error)
            await websocket.close(code=WS_INTERNAL_ERROR)
            return
    logger.debug("WebSocket client disconnected")

def mount_content(directory: str):
    """Serves static assets for every path no route above claims. Call after all routes exist."""
    app.mount("/", StaticFiles(directory=directory, html=True), name="content")
