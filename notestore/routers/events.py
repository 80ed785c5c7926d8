import asyncio
import contextlib
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from ..notifier import ObserverRegistry, queue_sink
from ..schemas import SubscriptionMessage

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_events(websocket: WebSocket):
    registry: ObserverRegistry = websocket.app.state.registry
    settings = websocket.app.state.settings
    connection_id = uuid.uuid4().hex

    queue: asyncio.Queue = asyncio.Queue(maxsize=settings.ws_queue_size)
    # Register before accepting so nothing published after the handshake is missed
    registry.connect(connection_id, queue_sink(asyncio.get_running_loop(), queue), [settings.root_name])
    await websocket.accept()

    async def pump():
        while True:
            event = await queue.get()
            try:
                await asyncio.wait_for(websocket.send_json(event.to_message()), timeout=settings.ws_send_timeout)
            except asyncio.TimeoutError:
                logger.warning("Observer %s too slow, dropping connection", connection_id)
                return
            except Exception:
                logger.debug("Send to observer %s failed", connection_id, exc_info=True)
                return

    async def listen():
        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message = SubscriptionMessage.model_validate_json(data)
                except ValidationError:
                    continue

                if message.type == "subscribe":
                    registry.subscribe(connection_id, message.collection)
                elif message.type == "unsubscribe":
                    registry.unsubscribe(connection_id, message.collection)
        except WebSocketDisconnect:
            pass

    # Either side finishing ends the connection: a client hangup, or a send that failed
    sender = asyncio.create_task(pump())
    receiver = asyncio.create_task(listen())
    try:
        done, _ = await asyncio.wait([sender, receiver], return_when=asyncio.FIRST_COMPLETED)
    finally:
        registry.disconnect(connection_id)
        for task in (sender, receiver):
            task.cancel()
        results = await asyncio.gather(sender, receiver, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Observer %s task failed: %r", connection_id, result)

    if sender in done:
        with contextlib.suppress(Exception):
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
