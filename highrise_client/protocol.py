# =============================================================================
# Highrise Gateway Client -- Wire Protocol Codec
# =============================================================================
#
# The gateway speaks plain JSON objects in both directions:
#
# Incoming (server -> client):
#   {"_type": "<EventType>", ...fields}
#
# Outgoing (client -> server):
#   {"_type": "<RequestType>", "rid": "<request id>", ...fields}
# =============================================================================

from __future__ import annotations

import json

from uuid import uuid4
from typing import Any

from ._logging import logger
from .constants import MAX_MESSAGE_SIZE, REQUEST_ID_FIELD, TYPE_FIELD

KEEPALIVE_REQUEST = "KeepaliveRequest"

try:
    import orjson

    def _json_loads(data: str | bytes) -> Any:
        return orjson.loads(data)

    def _json_dumps(obj: Any) -> str:
        return orjson.dumps(obj).decode()

except ImportError:

    def _json_loads(data: str | bytes) -> Any:
        return json.loads(data)

    def _json_dumps(obj: Any) -> str:
        return json.dumps(obj, separators=(",", ":"))


def new_request_id() -> str:
    return str(uuid4())


class FrameCodec:
    """Encode outgoing requests and decode incoming gateway frames.

    Decoding never raises: oversized, non-JSON, and non-object frames
    come back as ``None`` because the transport is treated as lossy.
    """

    def __init__(self, max_size: int = MAX_MESSAGE_SIZE) -> None:
        self._max_size = max_size

    def decode(self, data: str | bytes) -> dict[str, Any] | None:
        if len(data) > self._max_size:
            logger.warning("Frame exceeds max size (%d bytes), dropping", len(data))
            return None

        if isinstance(data, bytes):
            try:
                data = data.decode("utf-8")
            except UnicodeDecodeError:
                logger.debug("Undecodable binary frame (%d bytes)", len(data))
                return None

        try:
            parsed = _json_loads(data)
        except (json.JSONDecodeError, ValueError) as e:
            logger.debug("Failed to parse JSON: %s", e)
            return None

        if not isinstance(parsed, dict):
            return None
        return parsed

    def encode(
        self,
        type: str,
        payload: dict[str, Any] | None = None,
        *,
        request_id: str | None = None,
    ) -> str:
        """Encode a request frame, generating a fresh ``rid`` if not given."""
        message: dict[str, Any] = {TYPE_FIELD: type, **(payload or {})}
        message[TYPE_FIELD] = type
        message[REQUEST_ID_FIELD] = request_id or new_request_id()
        return _json_dumps(message)

    def keepalive(self) -> str:
        return self.encode(KEEPALIVE_REQUEST)
