# =============================================================================
# Highrise Gateway Client -- Room Cache Contract
# =============================================================================
#
# EventRouter never touches a cache directly. It emits CacheMutation
# objects; anything implementing RoomCache can subscribe and apply them.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ._logging import logger
from .types import AnchorPosition, Position


@runtime_checkable
class RoomCache(Protocol):
    """Mutation contract a room cache must implement."""

    def fetch_user_collection(self) -> Any: ...

    def add_user(self, user_id: str, data: dict[str, Any]) -> Any: ...

    def remove_user(self, user_id: str) -> Any: ...

    def update_position(
        self, user_id: str, position: Position | AnchorPosition
    ) -> Any: ...


class CacheMutation:
    """Base for mutation events emitted by the router."""

    def apply_to(self, cache: RoomCache) -> Any:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class FetchUserCollection(CacheMutation):
    def apply_to(self, cache: RoomCache) -> Any:
        return cache.fetch_user_collection()


@dataclass(frozen=True, slots=True)
class AddUser(CacheMutation):
    user_id: str
    data: dict[str, Any] = field(default_factory=dict)

    def apply_to(self, cache: RoomCache) -> Any:
        return cache.add_user(self.user_id, self.data)


@dataclass(frozen=True, slots=True)
class RemoveUser(CacheMutation):
    user_id: str

    def apply_to(self, cache: RoomCache) -> Any:
        return cache.remove_user(self.user_id)


@dataclass(frozen=True, slots=True)
class UpdatePosition(CacheMutation):
    user_id: str
    position: Position | AnchorPosition

    def apply_to(self, cache: RoomCache) -> Any:
        return cache.update_position(self.user_id, self.position)


class MemoryRoomCache:
    """In-memory :class:`RoomCache` keyed by user id.

    ``fetch_user_collection`` only records the request unless a *loader*
    is supplied; the loader's return value (or awaitable) is passed back
    so the router can schedule it.
    """

    def __init__(self, loader: Any | None = None) -> None:
        self._users: dict[str, dict[str, Any]] = {}
        self._loader = loader
        self.fetch_count = 0

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._users

    def __len__(self) -> int:
        return len(self._users)

    def get(self, user_id: str) -> dict[str, Any] | None:
        return self._users.get(user_id)

    def users(self) -> dict[str, dict[str, Any]]:
        return dict(self._users)

    def fetch_user_collection(self) -> Any:
        self.fetch_count += 1
        if self._loader is not None:
            return self._loader()
        return None

    def add_user(self, user_id: str, data: dict[str, Any]) -> None:
        self._users[user_id] = dict(data)

    def remove_user(self, user_id: str) -> None:
        if self._users.pop(user_id, None) is None:
            logger.debug("Cache miss on remove for user %s", user_id)

    def update_position(
        self, user_id: str, position: Position | AnchorPosition
    ) -> None:
        entry = self._users.get(user_id)
        if entry is None:
            logger.debug("Cache miss on move for user %s", user_id)
            return
        entry["position"] = position

    def clear(self) -> None:
        self._users.clear()
