from fastapi import APIRouter, HTTPException, Request

from backend import SignalingError, room_backend
from logging_config import get_logger
from schemas.rooms import RoomCodeResponse, RoomDetailsResponse

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("/code", response_model=RoomCodeResponse)
async def generate_room_code(request: Request):
    """Suggest a room code that no live room uses.

    The code is not reserved: a provider still has to send ``create-room``
    with it, and may lose the race to another provider.
    """
    try:
        room_id = room_backend.generate_room_code()
    except SignalingError as e:
        raise HTTPException(status_code=503, detail=e.message)
    client_host = request.client.host if request.client else "unknown"
    logger.debug(f"Generated room code {room_id} for {client_host}")
    return RoomCodeResponse(room_id=room_id)


@rooms_router.get("/{room_id}", response_model=RoomDetailsResponse)
async def get_room_details(room_id: str):
    room = room_backend.get_room(room_id)
    if not room:
        logger.info(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")
    return RoomDetailsResponse(**room)
