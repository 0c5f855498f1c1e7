from fastapi import APIRouter, HTTPException, Query, Request
from schemas.rooms import RoomDetailsResponse, RoomSummary
from constants import HOST_PEER_ID
from typing import Optional
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("/", response_model=list[RoomSummary])
async def list_rooms(request: Request):
    """List live rooms. Passwords are never exposed, only whether one is set."""
    room_registry = request.app.state.rooms
    rooms = await room_registry.list_rooms()
    logger.debug(f"Room list request: {len(rooms)} live rooms")
    return [
        RoomSummary(
            room_name=room.name,
            has_password=room.has_password,
            peer_count=len(room.clients) + 1,  # host included
            is_full=room.is_full,
            created_at=room.created_at,
        )
        for room in rooms
    ]


@rooms_router.get("/{room_name}", response_model=RoomDetailsResponse)
async def get_room_details(
    room_name: str,
    request: Request,
    password: Optional[str] = Query(None, description="Room password (required if room is password protected)"),
):
    """
    Get room details including the peer IDs currently in the room.
    Password is required if the room is password protected.

    Returns:
    - room_name: Room name
    - created_at: Room creation timestamp
    - host_peer_id: Peer ID of the host (always 1)
    - peer_ids: Peer IDs of connected clients
    - client_count: Number of connected clients
    - max_clients: Maximum clients allowed besides the host
    - next_peer_id: Peer ID the next joiner will get
    - has_password: Whether room is password protected
    - is_full: Whether room has reached max capacity
    """
    client_host = request.client.host if request.client else 'unknown'
    logger.info(f"Room details request for {room_name} from {client_host}")

    room_registry = request.app.state.rooms
    room = await room_registry.get_room(room_name)
    if not room:
        logger.warning(f"Room details failed: Room {room_name} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    if room.has_password:
        if not password:
            logger.warning(f"Room details failed: Password required for room {room_name}")
            raise HTTPException(status_code=401, detail="Password required for this room")

        if not await room_registry.check_password(room_name, password):
            logger.warning(f"Room details failed: Invalid password for room {room_name}")
            raise HTTPException(status_code=401, detail="Invalid password")

    logger.info(f"Room details retrieved for {room_name}: {len(room.clients)}/{room_registry.max_clients} clients")

    return RoomDetailsResponse(
        room_name=room.name,
        created_at=room.created_at,
        host_peer_id=HOST_PEER_ID,
        peer_ids=room.peer_ids,
        client_count=len(room.clients),
        max_clients=room_registry.max_clients,
        next_peer_id=room.next_peer_id,
        has_password=room.has_password,
        is_full=room.is_full,
    )
