import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 9001))
RELOAD = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# Per-connection outbound buffer; messages beyond this are dropped, never awaited
OUTBOUND_QUEUE_SIZE = int(os.getenv("OUTBOUND_QUEUE_SIZE", 256))

HOST_PEER_ID = 1
FIRST_CLIENT_PEER_ID = 2
MAX_CLIENTS_PER_ROOM = 4  # 5 players including the host
