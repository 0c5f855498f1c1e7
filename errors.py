class RoomError(Exception):
    """A rejected room request. The message is sent back to the requesting peer."""

    message = "Room request rejected"

    def __init__(self, message: str = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class RoomExists(RoomError):
    message = "Room already exists"


class RoomNotFound(RoomError):
    message = "Room not found"


class WrongPassword(RoomError):
    message = "Wrong password"


class RoomFull(RoomError):
    message = "Room is full (max 5 players)"


class AlreadyInRoom(RoomError):
    message = "Already in a room"
