from pydantic import BaseModel


class RoomCodeResponse(BaseModel):
    room_id: str


class RoomDetailsResponse(BaseModel):
    room_id: str
    created_at: str
    has_inspector: bool
    pending_for_inspector: int
    pending_for_provider: int


class HealthResponse(BaseModel):
    status: str
    rooms: int
