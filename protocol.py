from pydantic import ValidationError

from backend import RoomRegistry
from connections import ConnectionRegistry, Role, Session
from constants import HOST_PEER_ID
from errors import AlreadyInRoom, RoomError
from logging_config import get_logger
from schemas.messages import (
    CreateRoomMessage,
    ErrorMessage,
    HostDisconnected,
    JoinRoomMessage,
    PeerJoined,
    PeerLeft,
    RoomCreated,
    RoomJoined,
    SignalMessage,
    SignalRelay,
    parse_envelope,
)

logger = get_logger(__name__)


class SignalingProtocol:
    """Room lifecycle and host-centric routing for every connection of the relay.

    The transport hands over raw frames through handle_message() and calls
    cleanup() exactly once when a connection closes. All outbound traffic goes
    through the connection registry and never blocks.
    """

    def __init__(self, rooms: RoomRegistry, connections: ConnectionRegistry):
        self.rooms = rooms
        self.connections = connections

    def _send(self, connection_id: str, message) -> bool:
        return self.connections.send(connection_id, message.model_dump())

    async def handle_message(self, connection_id: str, raw) -> None:
        session = self.connections.get(connection_id)
        if session is None:
            logger.debug(f"Message from unregistered connection {connection_id} ignored")
            return
        if session.closing:
            logger.debug(f"Message from closing connection {connection_id} ignored")
            return

        try:
            message = parse_envelope(raw)
        except ValidationError as e:
            logger.debug(f"Ignoring malformed message from {connection_id}: {e.error_count()} error(s)")
            return

        logger.debug(f"Received {message.type} from connection {connection_id}")
        try:
            if isinstance(message, CreateRoomMessage):
                await self.handle_create_room(session, message)
            elif isinstance(message, JoinRoomMessage):
                await self.handle_join_room(session, message)
            elif isinstance(message, SignalMessage):
                await self.handle_signal(session, message)
        except RoomError as e:
            logger.warning(f"Rejected {message.type} from {connection_id}: {e.message}")
            self._send(connection_id, ErrorMessage(message=e.message))

    async def handle_create_room(self, session: Session, message: CreateRoomMessage) -> None:
        if session.in_room:
            raise AlreadyInRoom()

        room = await self.rooms.create_room(message.room_name, session.connection_id, message.password)
        session.assign(room.name, Role.HOST, HOST_PEER_ID)
        self._send(session.connection_id, RoomCreated(room_name=room.name, peer_id=HOST_PEER_ID))

    async def handle_join_room(self, session: Session, message: JoinRoomMessage) -> None:
        if session.in_room:
            raise AlreadyInRoom()

        joined = await self.rooms.join_room(message.room_name, session.connection_id, message.password)
        session.assign(joined.room_name, Role.CLIENT, joined.peer_id)

        # Order matters to existing peers: joiner first, then host, then the other clients
        self._send(
            session.connection_id,
            RoomJoined(room_name=joined.room_name, peer_id=joined.peer_id, existing_peers=joined.existing_peers),
        )
        announcement = PeerJoined(peer_id=joined.peer_id)
        self._send(joined.host_id, announcement)
        for client_id in joined.other_client_ids:
            self._send(client_id, announcement)

    async def handle_signal(self, session: Session, message: SignalMessage) -> None:
        if not session.in_room:
            logger.debug(f"Signal from {session.connection_id} outside any room dropped")
            return

        room = await self.rooms.get_room(session.room_name)
        if room is None:
            logger.debug(f"Signal for closed room {session.room_name} dropped")
            return

        if session.role == Role.HOST:
            if room.host_id != session.connection_id:
                return
            relay = SignalRelay(data=message.data, from_peer_id=HOST_PEER_ID)
            if message.target_peer_id is None:
                logger.debug(f"Broadcasting host signal to {len(room.clients)} clients in {room.name}")
                for client_id in room.client_ids:
                    self._send(client_id, relay)
                return
            target_id = room.client_connection(message.target_peer_id)
            if target_id is None:
                logger.debug(f"Signal target {message.target_peer_id} not in {room.name}, dropped")
                return
            self._send(target_id, relay)
        else:
            if room.client_connection(session.peer_id) != session.connection_id:
                return
            self._send(room.host_id, SignalRelay(data=message.data, from_peer_id=session.peer_id))

    async def cleanup(self, connection_id: str) -> None:
        """Tear down whatever the closed connection held. Safe to call more than once."""
        session = self.connections.unregister(connection_id)
        if session is None or not session.in_room:
            return

        if session.role == Role.HOST:
            await self._close_hosted_room(session)
        elif session.role == Role.CLIENT:
            await self._remove_client(session)

    async def _close_hosted_room(self, session: Session) -> None:
        room = await self.rooms.close_room(session.room_name, session.connection_id)
        if room is None:
            return

        for client_id in room.client_ids:
            client = self.connections.get(client_id)
            if client is None:
                continue
            # The room is gone; stale membership must not leak into a future room of the same name
            client.detach()
            self._send(client_id, HostDisconnected())
            self.connections.close(client_id)

    async def _remove_client(self, session: Session) -> None:
        left = await self.rooms.remove_client(session.room_name, session.peer_id, session.connection_id)
        if left is None:
            return

        notice = PeerLeft(peer_id=left.peer_id)
        self._send(left.host_id, notice)
        for client_id in left.remaining_client_ids:
            self._send(client_id, notice)
