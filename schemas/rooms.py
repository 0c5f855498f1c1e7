from pydantic import BaseModel


class RoomSummary(BaseModel):
    room_name: str
    has_password: bool
    peer_count: int
    is_full: bool
    created_at: str

class RoomDetailsResponse(BaseModel):
    room_name: str
    created_at: str
    host_peer_id: int
    peer_ids: list[int]
    client_count: int
    max_clients: int
    next_peer_id: int
    has_password: bool
    is_full: bool
