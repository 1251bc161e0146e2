from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Role(str, Enum):
    PROVIDER = "provider"
    INSPECTOR = "inspector"

    @property
    def counterpart(self) -> "Role":
        return Role.INSPECTOR if self is Role.PROVIDER else Role.PROVIDER


class MessageType(str, Enum):
    # client -> relay
    CREATE_ROOM = "create-room"
    JOIN_ROOM = "join-room"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    MOTION_DETECTED = "motion-detected"
    # relay -> client
    ROOM_CREATED = "room-created"
    ROOM_JOINED = "room-joined"
    INSPECTOR_JOINED = "inspector-joined"
    INSPECTOR_LEFT = "inspector-left"
    PROVIDER_LEFT = "provider-left"
    ERROR = "error"


# Fields forwarded for each relayed type; everything else (roomId, from, ...) is stripped
RELAY_FIELDS = {
    MessageType.OFFER: ("offer",),
    MessageType.ANSWER: ("answer",),
    MessageType.ICE_CANDIDATE: ("candidate",),
    MessageType.MOTION_DETECTED: (),
}

ERROR_INVALID_JSON = "Invalid JSON payload"
ERROR_UNKNOWN_TYPE = "Unknown message type"
ERROR_ROOM_ID_REQUIRED = "Room ID required"
ERROR_ROOM_EXISTS = "Room already exists"
ERROR_ROOM_NOT_FOUND = "Room not found"
ERROR_INSPECTOR_PRESENT = "Room already has an inspector"
ERROR_NOT_IN_ROOM = "Join a room before sending signals"
ERROR_ALREADY_IN_ROOM = "Already in a room"
ERROR_NO_ROOM_CODE = "No free room code available"


class SignalEnvelope(BaseModel):
    """A parsed client frame. Type-specific payload fields stay in ``model_extra``."""

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    roomId: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def drop_non_string_type(cls, value):
        # A non-string tag is an unknown type, not a malformed frame
        return value if isinstance(value, str) else None

    @field_validator("roomId", mode="before")
    @classmethod
    def coerce_numeric_room_id(cls, value):
        # Room codes are digits; accept them sent as JSON numbers
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def message_type(self) -> Optional[MessageType]:
        try:
            return MessageType(self.type)
        except ValueError:
            return None


def sanitize_signal(envelope: SignalEnvelope) -> dict:
    message_type = MessageType(envelope.type)
    extras = envelope.model_extra or {}
    message = {"type": message_type.value}
    for field in RELAY_FIELDS[message_type]:
        if field in extras:
            message[field] = extras[field]
    return message


def error_message(text: str) -> dict:
    return {"type": MessageType.ERROR.value, "message": text}


def room_created(room_id: str) -> dict:
    return {"type": MessageType.ROOM_CREATED.value, "roomId": room_id}


def room_joined(room_id: str) -> dict:
    return {"type": MessageType.ROOM_JOINED.value, "roomId": room_id}


def notification(message_type: MessageType) -> dict:
    """Payload-less notices: inspector-joined, inspector-left, provider-left."""
    return {"type": message_type.value}
