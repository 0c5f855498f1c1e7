from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from routers.rooms import rooms_router
from backend import RoomRegistry
from connections import ConnectionRegistry, PeerConnection
from protocol import SignalingProtocol
from constants import LOG_LEVEL, LOG_FILE
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


async def signaling_endpoint(websocket: WebSocket):
    """WebSocket endpoint for one peer.

    Every text frame is a JSON envelope (create_room, join_room or signal).
    Frames are handled one at a time in arrival order; whatever the peer held
    is cleaned up when the socket closes.
    """
    protocol: SignalingProtocol = websocket.app.state.protocol
    client_host = websocket.client.host if websocket.client else "unknown"

    await websocket.accept()
    connection = PeerConnection(websocket)
    connection_id = connection.connection_id
    protocol.connections.register(connection, connection_id)
    connection.start()
    logger.info(f"New connection established: {connection_id} from {client_host}")

    try:
        message_count = 0
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected normally for connection {connection_id}")
                break

            data = message.get("text")
            if data is None and message.get("bytes") is not None:
                data = message["bytes"].decode("utf-8", errors="replace")
            if data is None:
                continue

            message_count += 1
            logger.debug(f"Received message #{message_count} from connection {connection_id}")
            await protocol.handle_message(connection_id, data)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for connection {connection_id}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        # Cleanup on disconnect
        session = protocol.connections.get(connection_id)
        if session and session.in_room:
            logger.info(f"Connection {connection_id} closed (room {session.room_name}, peer_id {session.peer_id})")
        else:
            logger.info(f"Connection {connection_id} closed")
        await protocol.cleanup(connection_id)
        await connection.stop()

        try:
            await websocket.close()
        except Exception as e:
            logger.debug(f"Error closing WebSocket: {e}")


def create_app() -> FastAPI:
    app = FastAPI(title="Signaling relay")

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Allow all origins
        allow_credentials=True,
        allow_methods=["*"],  # Allow all HTTP methods
        allow_headers=["*"],  # Allow all headers
    )

    # Room state lives only in this process; each app owns its own registries
    room_registry = RoomRegistry()
    connection_registry = ConnectionRegistry()
    app.state.rooms = room_registry
    app.state.connections = connection_registry
    app.state.protocol = SignalingProtocol(room_registry, connection_registry)

    app.include_router(rooms_router)
    app.add_api_websocket_route("/", signaling_endpoint)
    app.add_api_websocket_route("/ws", signaling_endpoint)

    logger.info("FastAPI application initialized")
    return app


app = create_app()
