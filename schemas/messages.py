from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictInt, TypeAdapter

from constants import HOST_PEER_ID


# Inbound envelopes

class CreateRoomMessage(BaseModel):
    type: Literal["create_room"]
    room_name: str = Field(min_length=1)
    password: Optional[str] = None


class JoinRoomMessage(BaseModel):
    type: Literal["join_room"]
    room_name: str = Field(min_length=1)
    password: Optional[str] = None


class SignalMessage(BaseModel):
    type: Literal["signal"]
    data: Any
    target_peer_id: Optional[Annotated[StrictInt, Field(gt=0)]] = None


InboundMessage = Annotated[
    Union[CreateRoomMessage, JoinRoomMessage, SignalMessage],
    Field(discriminator="type"),
]

inbound_adapter = TypeAdapter(InboundMessage)


def parse_envelope(raw) -> Union[CreateRoomMessage, JoinRoomMessage, SignalMessage]:
    """Parse one text frame. Raises pydantic.ValidationError for anything that is not
    a well-formed envelope of a known type (bad JSON included)."""
    return inbound_adapter.validate_json(raw)


# Outbound envelopes

class RoomCreated(BaseModel):
    type: Literal["room_created"] = "room_created"
    room_name: str
    peer_id: int = HOST_PEER_ID


class RoomJoined(BaseModel):
    type: Literal["room_joined"] = "room_joined"
    room_name: str
    peer_id: int
    existing_peers: List[int]


class PeerJoined(BaseModel):
    type: Literal["peer_joined"] = "peer_joined"
    peer_id: int


class SignalRelay(BaseModel):
    type: Literal["signal"] = "signal"
    data: Any
    from_peer_id: int


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    message: str


class HostDisconnected(BaseModel):
    type: Literal["host_disconnected"] = "host_disconnected"


class PeerLeft(BaseModel):
    type: Literal["peer_left"] = "peer_left"
    peer_id: int
