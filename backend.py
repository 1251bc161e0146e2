import random
import threading
from collections import deque
from datetime import datetime
from typing import Dict, Optional

from constants import ROOM_CODE_ATTEMPTS, ROOM_CODE_LENGTH
from logging_config import get_logger
from schemas.messages import (
    ERROR_ALREADY_IN_ROOM,
    ERROR_INSPECTOR_PRESENT,
    ERROR_NO_ROOM_CODE,
    ERROR_NOT_IN_ROOM,
    ERROR_ROOM_EXISTS,
    ERROR_ROOM_ID_REQUIRED,
    ERROR_ROOM_NOT_FOUND,
    MessageType,
    Role,
    SignalEnvelope,
    notification,
    room_created,
    room_joined,
    sanitize_signal,
)

logger = get_logger(__name__)


class SignalingError(Exception):
    """A request the relay rejects; ``message`` is sent back to the caller as-is."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Room:
    def __init__(self, room_id: str, provider):
        self.room_id = room_id
        self.provider = provider
        self.inspector = None
        self.pending_for_inspector: deque = deque()
        self.pending_for_provider: deque = deque()
        self.created_at = datetime.now().isoformat()

    def member(self, role: Role):
        return self.provider if role is Role.PROVIDER else self.inspector

    def pending_for(self, role: Role) -> deque:
        return self.pending_for_provider if role is Role.PROVIDER else self.pending_for_inspector


class RoomBackend:
    """In-memory room table.

    Every operation runs under one lock and never awaits: replies and
    forwarded messages are handed to ``Connection.deliver``, which only
    enqueues. Sends therefore leave in the order the transitions happened.
    """

    def __init__(self):
        self.rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()
        logger.info("Initializing in-memory RoomBackend")

    def create_room(self, connection, room_id: Optional[str]) -> Room:
        with self._lock:
            if connection.role is not None:
                raise SignalingError(ERROR_ALREADY_IN_ROOM)
            if not room_id:
                raise SignalingError(ERROR_ROOM_ID_REQUIRED)
            if room_id in self.rooms:
                raise SignalingError(ERROR_ROOM_EXISTS)

            room = Room(room_id, connection)
            self.rooms[room_id] = room
            connection.bind(room_id, Role.PROVIDER)
            connection.deliver(room_created(room_id))
        logger.info(f"Room {room_id} created by connection {connection.connection_id}")
        return room

    def join_room(self, connection, room_id: Optional[str]) -> Room:
        with self._lock:
            if connection.role is not None:
                raise SignalingError(ERROR_ALREADY_IN_ROOM)
            room = self.rooms.get(room_id) if room_id else None
            if room is None or room.provider is None:
                raise SignalingError(ERROR_ROOM_NOT_FOUND)
            if room.inspector is not None and room.inspector.is_open:
                raise SignalingError(ERROR_INSPECTOR_PRESENT)

            room.inspector = connection
            connection.bind(room_id, Role.INSPECTOR)
            connection.deliver(room_joined(room_id))
            room.provider.deliver(notification(MessageType.INSPECTOR_JOINED))
            queued = len(room.pending_for_inspector)
            self._flush(room.pending_for_inspector, connection)
        logger.info(f"Inspector {connection.connection_id} joined room {room_id}, flushed {queued} queued messages")
        return room

    def relay(self, connection, envelope: SignalEnvelope) -> bool:
        """Forward a negotiation message to the caller's counterpart.

        Returns True when handed to an open connection, False when queued.
        """
        with self._lock:
            if connection.role is None:
                raise SignalingError(ERROR_NOT_IN_ROOM)
            room_id = envelope.roomId or connection.room_id
            room = self.rooms.get(room_id)
            if room is None or room_id != connection.room_id or room.member(connection.role) is not connection:
                raise SignalingError(ERROR_ROOM_NOT_FOUND)

            message = sanitize_signal(envelope)
            target_role = connection.role.counterpart
            target = room.member(target_role)
            if target is not None and target.is_open:
                target.deliver(message)
                delivered = True
            else:
                queue = room.pending_for(target_role)
                queue.append(message)
                delivered = False
                logger.debug(f"Queued {message['type']} for {target_role.value} in room {room_id} (queue length: {len(queue)})")

        if delivered:
            logger.debug(f"Relayed {message['type']} from {connection.role.value} to {target_role.value} in room {room_id}")
        return delivered

    def disconnect(self, connection):
        """Tear down whatever the closing connection held. Safe to call more than once."""
        with self._lock:
            room_id, role = connection.room_id, connection.role
            connection.clear_membership()
            if role is None:
                return
            room = self.rooms.get(room_id)
            if room is None:
                return

            if role is Role.PROVIDER and room.provider is connection:
                inspector = room.inspector
                if inspector is not None:
                    inspector.deliver(notification(MessageType.PROVIDER_LEFT))
                    inspector.clear_membership()
                    inspector.close()
                del self.rooms[room_id]
                logger.info(f"Room {room_id} closed, provider {connection.connection_id} left")
            elif role is Role.INSPECTOR and room.inspector is connection:
                room.inspector = None
                room.pending_for_inspector.clear()
                if room.provider is not None and room.provider.is_open:
                    room.provider.deliver(notification(MessageType.INSPECTOR_LEFT))
                logger.info(f"Inspector {connection.connection_id} left room {room_id}")

    def get_room(self, room_id: str) -> Optional[dict]:
        with self._lock:
            room = self.rooms.get(room_id)
            if room is None:
                return None
            return {
                "room_id": room.room_id,
                "created_at": room.created_at,
                "has_inspector": room.inspector is not None and room.inspector.is_open,
                "pending_for_inspector": len(room.pending_for_inspector),
                "pending_for_provider": len(room.pending_for_provider),
            }

    def room_count(self) -> int:
        with self._lock:
            return len(self.rooms)

    def generate_room_code(self, length: int = ROOM_CODE_LENGTH, attempts: int = ROOM_CODE_ATTEMPTS) -> str:
        """A numeric code of ``length`` digits, not starting with 0, unused right now.

        Raises ``SignalingError`` when ``attempts`` random draws all hit live rooms.
        """
        if length < 1:
            raise ValueError(f"Room code length must be positive, got {length}")
        low, high = 10 ** (length - 1), 10 ** length - 1
        with self._lock:
            for _ in range(attempts):
                code = str(random.randint(low, high))
                if code not in self.rooms:
                    return code
        logger.warning(f"No free room code of length {length} after {attempts} attempts")
        raise SignalingError(ERROR_NO_ROOM_CODE)

    @staticmethod
    def _flush(queue: deque, connection):
        while queue and connection.is_open:
            connection.deliver(queue.popleft())


room_backend = RoomBackend()
