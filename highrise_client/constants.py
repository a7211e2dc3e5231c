# =============================================================================
# Highrise Gateway Client -- Protocol Constants
# =============================================================================

from ._version import __version__

CLIENT_VERSION = __version__

# -- Endpoint ------------------------------------------------------------------

GATEWAY_URL = "wss://highrise.game/web/botapi"

HEADER_ROOM_ID = "room-id"
HEADER_API_TOKEN = "api-token"

# -- Timing (seconds) --------------------------------------------------------

HEARTBEAT_INTERVAL = 15.0  # server drops the session without a keepalive
RECONNECT_DELAY = 5.0
CONNECTION_TIMEOUT = 10.0

# -- Credentials ---------------------------------------------------------------

TOKEN_LENGTH = 64
ROOM_ID_LENGTH = 24

# -- Messages ------------------------------------------------------------------

MAX_MESSAGE_SIZE = 1_048_576  # 1 MB

TYPE_FIELD = "_type"
REQUEST_ID_FIELD = "rid"

# -- WebSocket close codes -----------------------------------------------------

WS_CLOSE_NORMAL = 1000
