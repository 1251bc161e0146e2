import asyncio
import json
import uuid
from typing import Optional

from fastapi import WebSocket

from constants import OUTBOX_MAX_SIZE
from logging_config import get_logger
from schemas.messages import Role

logger = get_logger(__name__)

# Outbox marker: close the websocket once everything queued before it is sent
_CLOSE = object()


class Connection:
    """A client websocket plus the room membership the relay has assigned to it.

    Outbound traffic is fire-and-forget: ``deliver`` and ``close`` only enqueue,
    and a background writer task performs the actual sends in order. This keeps
    room-table transitions free of network I/O and a slow peer from stalling
    anyone else.
    """

    def __init__(self, websocket: WebSocket, connection_id: Optional[str] = None, outbox_size: int = OUTBOX_MAX_SIZE):
        self.websocket = websocket
        self.connection_id = connection_id or str(uuid.uuid4())
        self.room_id: Optional[str] = None
        self.role: Optional[Role] = None
        self.is_open = True
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=outbox_size)
        self._writer_task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None

    def __repr__(self):
        return f"Connection({self.connection_id[:8]}, room={self.room_id}, role={self.role.value if self.role else None})"

    def start(self):
        self._writer_task = asyncio.create_task(self._drain_outbox())
        logger.debug(f"Started writer task for connection {self.connection_id}")

    def bind(self, room_id: str, role: Role):
        self.room_id = room_id
        self.role = role

    def clear_membership(self):
        self.room_id = None
        self.role = None

    def deliver(self, message: dict) -> bool:
        if not self.is_open:
            logger.debug(f"Dropping {message.get('type')} for closed connection {self.connection_id}")
            return False
        try:
            self._outbox.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Outbox full for connection {self.connection_id}, closing it")
            self._abort()
            return False
        return True

    def close(self):
        if not self.is_open:
            return
        self.is_open = False
        try:
            self._outbox.put_nowait(_CLOSE)
        except asyncio.QueueFull:
            self._abort()

    def _abort(self):
        """Drop everything still queued and close the websocket right away."""
        self.is_open = False
        if self._writer_task is not None:
            self._writer_task.cancel()
        if self._close_task is None:
            self._close_task = asyncio.create_task(self._close_websocket())

    def mark_closed(self):
        """Transport is gone; called once by the endpoint before disconnect handling."""
        self.is_open = False

    async def shutdown(self):
        if self._writer_task is None or self._writer_task.done():
            return
        self._writer_task.cancel()
        try:
            await self._writer_task
        except asyncio.CancelledError:
            pass
        logger.debug(f"Stopped writer task for connection {self.connection_id}")

    async def _drain_outbox(self):
        while True:
            item = await self._outbox.get()
            if item is _CLOSE:
                await self._close_websocket()
                return
            try:
                await self.websocket.send_text(json.dumps(item))
            except Exception as e:
                # Peer already gone; notifications are best-effort
                logger.debug(f"Send of {item.get('type')} to connection {self.connection_id} failed: {e}")
                self.is_open = False
                return

    async def _close_websocket(self):
        try:
            await self.websocket.close()
            logger.debug(f"Closed websocket for connection {self.connection_id}")
        except Exception as e:
            logger.debug(f"Error closing websocket for connection {self.connection_id}: {e}")
