# =============================================================================
# Highrise Gateway Client -- Event Vocabulary
# =============================================================================
#
# Every ``_type`` tag the gateway may send, and the subscription code used in
# the ``events`` query parameter for the tags a bot can opt into.
# =============================================================================

from __future__ import annotations

from enum import Enum
from typing import Iterable


class EventType(str, Enum):
    """Known inbound frame tags. Frames with any other tag are dropped."""

    SESSION_METADATA = "SessionMetadata"
    KEEPALIVE_RESPONSE = "KeepaliveResponse"
    ERROR = "Error"
    CHAT = "ChatEvent"
    MESSAGE = "MessageEvent"
    EMOTE = "EmoteEvent"
    REACTION = "ReactionEvent"
    TIP_REACTION = "TipReactionEvent"
    USER_JOINED = "UserJoinedEvent"
    USER_LEFT = "UserLeftEvent"
    USER_MOVED = "UserMovedEvent"
    VOICE = "VoiceEvent"
    CHANNEL = "ChannelEvent"
    ROOM_MODERATED = "RoomModeratedEvent"

    @property
    def code(self) -> str | None:
        """Subscription code, or ``None`` when the tag is always delivered."""
        return SUBSCRIPTION_CODES.get(self)


# Handshake frame that carries session identity.
HANDSHAKE_EVENT = EventType.SESSION_METADATA

# Frames that drive cache mutations.
MEMBERSHIP_EVENTS = frozenset(
    {
        EventType.USER_JOINED,
        EventType.USER_LEFT,
        EventType.USER_MOVED,
    }
)

SUBSCRIPTION_CODES: dict[EventType, str] = {
    EventType.CHAT: "chat",
    EventType.MESSAGE: "messages",
    EventType.EMOTE: "emotes",
    EventType.REACTION: "reactions",
    EventType.TIP_REACTION: "tips",
    EventType.USER_JOINED: "joins",
    EventType.USER_LEFT: "leaves",
    EventType.USER_MOVED: "movements",
    EventType.VOICE: "voice",
    EventType.CHANNEL: "channel",
    EventType.ROOM_MODERATED: "moderation",
}

_BY_TAG: dict[str, EventType] = {member.value: member for member in EventType}


def lookup(tag: str) -> EventType | None:
    """Return the :class:`EventType` for a frame tag, or ``None``."""
    return _BY_TAG.get(tag)


def coerce(events: Iterable[EventType | str]) -> list[EventType]:
    """Normalize user-supplied events; unknown names are skipped.

    Accepts members, their tag values (``"ChatEvent"``) or subscription
    codes (``"chat"``).
    """
    by_code = {code: member for member, code in SUBSCRIPTION_CODES.items()}
    result: list[EventType] = []
    for item in events:
        member = item if isinstance(item, EventType) else (
            _BY_TAG.get(item) or by_code.get(item)
        )
        if member is not None and member not in result:
            result.append(member)
    return result


def subscription_param(events: Iterable[EventType]) -> str:
    """Comma-joined subscription codes; empty if none are subscribable."""
    return ",".join(code for code in (e.code for e in events) if code)
