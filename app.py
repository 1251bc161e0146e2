from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
import json

from backend import SignalingError, room_backend
from connections import Connection
from constants import CORS_ORIGINS, LOG_LEVEL, LOG_FILE
from logging_config import get_logger, setup_logging
from routers.rooms import rooms_router
from schemas.messages import (
    ERROR_INVALID_JSON,
    ERROR_UNKNOWN_TYPE,
    MessageType,
    SignalEnvelope,
    error_message,
)
from schemas.rooms import HealthResponse

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

app = FastAPI(title="Signaling Relay")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms_router)

logger.info("FastAPI application initialized")

RELAYED_TYPES = (
    MessageType.OFFER,
    MessageType.ANSWER,
    MessageType.ICE_CANDIDATE,
    MessageType.MOTION_DETECTED,
)


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", rooms=room_backend.room_count())


def reject_constant(name):
    raise ValueError(f"{name} is not valid JSON")


def parse_frame(data) -> SignalEnvelope:
    payload = json.loads(data, parse_constant=reject_constant)
    if not isinstance(payload, dict):
        raise ValueError("Frame is not a JSON object")
    return SignalEnvelope.model_validate(payload)


def dispatch(connection: Connection, envelope: SignalEnvelope):
    message_type = envelope.message_type

    if message_type is MessageType.CREATE_ROOM:
        room_backend.create_room(connection, envelope.roomId)
    elif message_type is MessageType.JOIN_ROOM:
        room_backend.join_room(connection, envelope.roomId)
    elif message_type in RELAYED_TYPES:
        if message_type is MessageType.MOTION_DETECTED:
            logger.debug(f"Received motion-detected from connection {connection.connection_id} in room {envelope.roomId}")
        room_backend.relay(connection, envelope)
    else:
        raise SignalingError(ERROR_UNKNOWN_TYPE)


def handle_frame(connection: Connection, data):
    try:
        envelope = parse_frame(data)
    except (ValueError, ValidationError) as e:
        logger.debug(f"Invalid frame from connection {connection.connection_id}: {e}")
        connection.deliver(error_message(ERROR_INVALID_JSON))
        return

    try:
        dispatch(connection, envelope)
    except SignalingError as e:
        logger.info(f"Rejected {envelope.type} from connection {connection.connection_id}: {e.message}")
        connection.deliver(error_message(e.message))


@app.websocket("/")
@app.websocket("/ws")
async def signaling_endpoint(websocket: WebSocket):
    """One websocket per client session; frames are JSON objects tagged by ``type``."""
    await websocket.accept()
    connection = Connection(websocket)
    connection.start()
    logger.info(f"Connection {connection.connection_id} opened")

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"Connection {connection.connection_id} closed with code {message.get('code')}")
                break
            data = message.get("text")
            if data is None:
                data = message.get("bytes")
            if data is None:
                continue
            handle_frame(connection, data)
    except Exception as e:
        logger.error(f"Error on connection {connection.connection_id}: {e}", exc_info=True)
    finally:
        connection.mark_closed()
        room_backend.disconnect(connection)
        await connection.shutdown()
