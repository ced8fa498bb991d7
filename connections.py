import asyncio
import json
from typing import Dict, Iterable

from fastapi import WebSocket

from constants import OUTGOING_QUEUE_SIZE
from logging_config import get_logger
from protocol import OutboundMessage

logger = get_logger(__name__)

# Policy violation: the client stopped reading its frames
STALLED_CLOSE_CODE = 1008


class ConnectionManager:
    """Maps connection ids to live WebSockets and delivers outbound messages.

    Each connection gets its own bounded outgoing queue drained by a sender task,
    so ``deliver`` never awaits: the protocol's messages for one event are all
    queued before the next event is handled, and each socket sees them in that
    order. Who receives what is decided by the session registry, not here.
    """

    def __init__(self, max_queue_size: int = OUTGOING_QUEUE_SIZE):
        self.max_queue_size = max_queue_size
        # Format: {connection_id: websocket}
        self.connections: Dict[str, WebSocket] = {}
        self.outgoing: Dict[str, asyncio.Queue] = {}
        self.sender_tasks: Dict[str, asyncio.Task] = {}
        self.close_tasks: Dict[str, asyncio.Task] = {}

    def register(self, connection_id: str, websocket: WebSocket):
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self.connections[connection_id] = websocket
        self.outgoing[connection_id] = queue
        self.sender_tasks[connection_id] = asyncio.create_task(self._send_loop(connection_id, websocket, queue))
        logger.debug(f"Registered connection {connection_id} ({len(self.connections)} live)")

    async def unregister(self, connection_id: str):
        self.connections.pop(connection_id, None)
        self.outgoing.pop(connection_id, None)
        self.close_tasks.pop(connection_id, None)
        task = self.sender_tasks.pop(connection_id, None)
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.debug(f"Unregistered connection {connection_id} ({len(self.connections)} live)")

    def deliver(self, messages: Iterable[OutboundMessage]):
        for message in messages:
            queue = self.outgoing.get(message.connection_id)
            if queue is None:
                logger.debug(f"Dropping {message.event} for closed connection {message.connection_id}")
                continue
            try:
                queue.put_nowait(message.frame())
            except asyncio.QueueFull:
                logger.warning(
                    f"Connection {message.connection_id} has {queue.qsize()} unsent frames, disconnecting it"
                )
                self._disconnect_stalled(message.connection_id)

    def _disconnect_stalled(self, connection_id: str):
        self.outgoing.pop(connection_id, None)
        task = self.sender_tasks.get(connection_id)
        if task is not None:
            task.cancel()
        websocket = self.connections.get(connection_id)
        if websocket is not None and connection_id not in self.close_tasks:
            # The receive loop sees the close and runs the disconnect cleanup
            self.close_tasks[connection_id] = asyncio.create_task(self._close(connection_id, websocket))

    async def _close(self, connection_id: str, websocket: WebSocket):
        try:
            await websocket.close(code=STALLED_CLOSE_CODE)
        except Exception as e:
            logger.debug(f"Error closing WebSocket {connection_id}: {e}")

    async def _send_loop(self, connection_id: str, websocket: WebSocket, queue: asyncio.Queue):
        try:
            while True:
                frame = await queue.get()
                await websocket.send_text(json.dumps(frame))
                logger.debug(f"Sent {frame['event']} to connection {connection_id}")
        except Exception as e:
            logger.warning(f"Error sending to connection {connection_id}: {e}")
            # Nothing drains this queue any more; later frames are dropped until the receive loop cleans up
            if self.outgoing.get(connection_id) is queue:
                del self.outgoing[connection_id]
