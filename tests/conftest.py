import json

import pytest

from backend import RoomRegistry
from connections import ConnectionRegistry
from protocol import SignalingProtocol


class FakeConnection:
    """Records outbound envelopes instead of writing to a socket."""

    def __init__(self):
        self.sent = []
        self.closed = False

    def send(self, message):
        if self.closed:
            return False
        self.sent.append(message)
        return True

    def close(self):
        self.closed = True


class Peer:
    def __init__(self, protocol, connection_id):
        self.protocol = protocol
        self.id = connection_id
        self.conn = FakeConnection()
        protocol.connections.register(self.conn, connection_id)

    @property
    def session(self):
        return self.protocol.connections.get(self.id)

    @property
    def messages(self):
        return self.conn.sent

    def types(self):
        return [message["type"] for message in self.conn.sent]

    def clear(self):
        self.conn.sent.clear()

    async def send(self, payload):
        raw = payload if isinstance(payload, (str, bytes)) else json.dumps(payload)
        await self.protocol.handle_message(self.id, raw)

    async def create(self, room_name, password=None):
        payload = {"type": "create_room", "room_name": room_name}
        if password is not None:
            payload["password"] = password
        await self.send(payload)

    async def join(self, room_name, password=None):
        payload = {"type": "join_room", "room_name": room_name}
        if password is not None:
            payload["password"] = password
        await self.send(payload)

    async def signal(self, data, target_peer_id=None):
        payload = {"type": "signal", "data": data}
        if target_peer_id is not None:
            payload["target_peer_id"] = target_peer_id
        await self.send(payload)

    async def disconnect(self):
        await self.protocol.cleanup(self.id)


@pytest.fixture
async def protocol():
    return SignalingProtocol(RoomRegistry(), ConnectionRegistry())


@pytest.fixture
def peer(protocol):
    counter = iter(range(1, 1000))

    def factory(name=None):
        return Peer(protocol, name or f"conn-{next(counter)}")

    return factory
