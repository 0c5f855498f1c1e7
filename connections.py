import asyncio
import json
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from constants import OUTBOUND_QUEUE_SIZE
from logging_config import get_logger

logger = get_logger(__name__)

_CLOSE = object()


class Role(str, Enum):
    UNSET = "unset"
    HOST = "host"
    CLIENT = "client"


class PeerConnection:
    """Fire-and-forget sender for one WebSocket.

    send() and close() never block: messages go onto a bounded queue drained by a
    writer task, so a slow peer only ever fills its own buffer.
    """

    def __init__(self, websocket, queue_size: int = OUTBOUND_QUEUE_SIZE, connection_id: str = None):
        self.websocket = websocket
        self.connection_id = connection_id or uuid.uuid4().hex
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._writer_task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None
        self._closing = False

    def start(self):
        if self._writer_task is None:
            self._writer_task = asyncio.create_task(self._writer())
        return self._writer_task

    def send(self, message: dict) -> bool:
        if self._closing:
            logger.debug(f"Dropping {message.get('type')} for closing connection {self.connection_id}")
            return False
        try:
            self._outbox.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full for connection {self.connection_id}, dropping {message.get('type')}")
            return False
        return True

    def close(self):
        """Close the socket once everything queued before this call has been written."""
        if self._closing:
            return
        self._closing = True
        try:
            self._outbox.put_nowait(_CLOSE)
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full for connection {self.connection_id}, closing without flushing")
            if self._writer_task is not None:
                self._writer_task.cancel()
            self._close_task = asyncio.create_task(self._close_socket())

    async def stop(self):
        """Cancel the writer; anything still queued is discarded."""
        self._closing = True
        if self._writer_task is None:
            return
        self._writer_task.cancel()
        try:
            await self._writer_task
        except asyncio.CancelledError:
            pass

    async def _writer(self):
        while True:
            message = await self._outbox.get()
            if message is _CLOSE:
                await self._close_socket()
                return
            try:
                await self.websocket.send_text(json.dumps(message))
            except Exception as e:
                logger.debug(f"Error sending to connection {self.connection_id}: {e}")
                self._closing = True
                return

    async def _close_socket(self):
        try:
            await self.websocket.close()
            logger.debug(f"Closed connection {self.connection_id}")
        except Exception as e:
            logger.debug(f"Error closing WebSocket {self.connection_id}: {e}")


@dataclass
class Session:
    connection_id: str
    connection: object
    room_name: Optional[str] = None
    role: Role = Role.UNSET
    peer_id: int = 0
    closing: bool = False  # evicted by the relay, transport close still in flight

    @property
    def in_room(self) -> bool:
        return self.room_name is not None

    def assign(self, room_name: str, role: Role, peer_id: int):
        self.room_name = room_name
        self.role = role
        self.peer_id = peer_id

    def detach(self):
        self.room_name = None
        self.role = Role.UNSET
        self.peer_id = 0


class ConnectionRegistry:
    """Session records for every open connection, keyed by connection id.

    A connection object only needs send(dict) and close(); both must return
    without waiting on the peer.
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def __len__(self):
        return len(self._sessions)

    def __contains__(self, connection_id: str):
        return connection_id in self._sessions

    def register(self, connection, connection_id: str = None) -> Session:
        connection_id = connection_id or getattr(connection, "connection_id", None) or uuid.uuid4().hex
        session = Session(connection_id=connection_id, connection=connection)
        self._sessions[connection_id] = session
        logger.debug(f"Registered connection {connection_id} ({len(self._sessions)} open)")
        return session

    def get(self, connection_id: str) -> Optional[Session]:
        return self._sessions.get(connection_id)

    def unregister(self, connection_id: str) -> Optional[Session]:
        session = self._sessions.pop(connection_id, None)
        if session is not None:
            logger.debug(f"Unregistered connection {connection_id} ({len(self._sessions)} open)")
        return session

    def send(self, connection_id: str, message: dict) -> bool:
        session = self._sessions.get(connection_id)
        if session is None:
            # Peer disconnected between the snapshot and the send
            logger.debug(f"Dropping {message.get('type')} for gone connection {connection_id}")
            return False
        return session.connection.send(message)

    def close(self, connection_id: str):
        session = self._sessions.get(connection_id)
        if session is not None:
            session.closing = True
            session.connection.close()
