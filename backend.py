import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from constants import FIRST_CLIENT_PEER_ID, HOST_PEER_ID, MAX_CLIENTS_PER_ROOM
from errors import RoomExists, RoomFull, RoomNotFound, WrongPassword
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Room:
    name: str
    host_id: str
    password: Optional[str] = None
    clients: Dict[int, str] = field(default_factory=dict)  # peer_id -> connection_id
    next_peer_id: int = FIRST_CLIENT_PEER_ID
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def has_password(self) -> bool:
        return bool(self.password)

    def snapshot(self, max_clients: int = MAX_CLIENTS_PER_ROOM) -> "RoomSnapshot":
        return RoomSnapshot(
            name=self.name,
            host_id=self.host_id,
            clients=tuple(sorted(self.clients.items())),
            has_password=self.has_password,
            next_peer_id=self.next_peer_id,
            created_at=self.created_at,
            is_full=len(self.clients) >= max_clients,
        )


@dataclass(frozen=True)
class RoomSnapshot:
    """Point-in-time copy of a room's membership, safe to iterate without the lock."""

    name: str
    host_id: str
    clients: Tuple[Tuple[int, str], ...]
    has_password: bool
    next_peer_id: int
    created_at: str
    is_full: bool

    @property
    def peer_ids(self) -> List[int]:
        return [peer_id for peer_id, _ in self.clients]

    @property
    def client_ids(self) -> List[str]:
        return [connection_id for _, connection_id in self.clients]

    def client_connection(self, peer_id: int) -> Optional[str]:
        for client_peer_id, connection_id in self.clients:
            if client_peer_id == peer_id:
                return connection_id
        return None


@dataclass(frozen=True)
class JoinResult:
    room_name: str
    peer_id: int
    existing_peers: List[int]
    host_id: str
    other_client_ids: List[str]


@dataclass(frozen=True)
class ClientLeft:
    room_name: str
    peer_id: int
    host_id: str
    remaining_client_ids: List[str]


class RoomRegistry:
    """Process-wide map of room name -> Room.

    Every check-then-mutate sequence runs under a single asyncio.Lock, and no
    critical section awaits anything besides the lock itself. Callers get
    snapshots back and do their fan-out after the lock is released.
    """

    def __init__(self, max_clients: int = MAX_CLIENTS_PER_ROOM):
        self.max_clients = max_clients
        self._rooms: Dict[str, Room] = {}
        self._lock = asyncio.Lock()
        logger.info(f"Initializing RoomRegistry (max {max_clients} clients per room)")

    def __len__(self):
        return len(self._rooms)

    def __contains__(self, room_name: str):
        return room_name in self._rooms

    async def create_room(self, room_name: str, host_id: str, password: Optional[str] = None) -> RoomSnapshot:
        async with self._lock:
            if room_name in self._rooms:
                logger.debug(f"Room {room_name} already exists")
                raise RoomExists()
            room = Room(name=room_name, host_id=host_id, password=password or None)
            self._rooms[room_name] = room
            logger.info(f"Room created: {room_name} (host {host_id}, peer_id: {HOST_PEER_ID})")
            return room.snapshot(self.max_clients)

    async def join_room(self, room_name: str, connection_id: str, password: Optional[str] = None) -> JoinResult:
        async with self._lock:
            room = self._rooms.get(room_name)
            if room is None:
                raise RoomNotFound()
            if room.password and room.password != password:
                raise WrongPassword()
            if len(room.clients) >= self.max_clients:
                logger.debug(f"Room {room_name} is full ({len(room.clients)}/{self.max_clients} clients)")
                raise RoomFull()

            existing = sorted(room.clients.items())
            peer_id = room.next_peer_id
            room.next_peer_id += 1
            room.clients[peer_id] = connection_id
            logger.info(f"Client joined room: {room_name} (assigned peer_id: {peer_id})")
            return JoinResult(
                room_name=room_name,
                peer_id=peer_id,
                existing_peers=[existing_peer_id for existing_peer_id, _ in existing],
                host_id=room.host_id,
                other_client_ids=[client_id for _, client_id in existing],
            )

    async def get_room(self, room_name: str) -> Optional[RoomSnapshot]:
        async with self._lock:
            room = self._rooms.get(room_name)
            return room.snapshot(self.max_clients) if room else None

    async def check_password(self, room_name: str, password: Optional[str]) -> bool:
        async with self._lock:
            room = self._rooms.get(room_name)
            if room is None:
                return False
            return not room.password or room.password == password

    async def list_rooms(self) -> List[RoomSnapshot]:
        async with self._lock:
            return [room.snapshot(self.max_clients) for room in self._rooms.values()]

    async def close_room(self, room_name: str, host_id: str) -> Optional[RoomSnapshot]:
        """Remove a room when its host leaves. Returns the final membership, or None
        if the room is gone or belongs to a different host."""
        async with self._lock:
            room = self._rooms.get(room_name)
            if room is None or room.host_id != host_id:
                logger.debug(f"Close room {room_name}: nothing to do for host {host_id}")
                return None
            del self._rooms[room_name]
            logger.info(f"Host left, closing room: {room_name} ({len(room.clients)} clients)")
            return room.snapshot(self.max_clients)

    async def remove_client(self, room_name: str, peer_id: int, connection_id: str) -> Optional[ClientLeft]:
        """Drop a client slot. The peer_id is retired, not reassigned."""
        async with self._lock:
            room = self._rooms.get(room_name)
            if room is None or room.clients.get(peer_id) != connection_id:
                logger.debug(f"Remove peer {peer_id} from {room_name}: not a member")
                return None
            del room.clients[peer_id]
            logger.info(f"Peer {peer_id} left room: {room_name}")
            return ClientLeft(
                room_name=room_name,
                peer_id=peer_id,
                host_id=room.host_id,
                remaining_client_ids=[client_id for _, client_id in sorted(room.clients.items())],
            )
