"""Room name to groupware resource id resolution.

The portal identifies rooms by a numeric ``resSeq``. After login we read the
portal's resource tree and record the ids of our target rooms; when that tree
is unavailable, or does not list a room, the static table below answers and a
warning is logged so the fallback is visible in the logs.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import UnknownRoomError
from .models import MeetingRoom

logger = logging.getLogger(__name__)

# Gasan building, floors 2 and 3.
TARGET_ROOMS: List[MeetingRoom] = [
    MeetingRoom(name="R2.1", floor="2F", location="Gasan"),
    MeetingRoom(name="R2.2", floor="2F", location="Gasan"),
    MeetingRoom(name="R3.1", floor="3F", location="Gasan"),
    MeetingRoom(name="R3.2", floor="3F", location="Gasan"),
    MeetingRoom(name="R3.3", floor="3F", location="Gasan"),
    MeetingRoom(name="R3.5", floor="3F", location="Gasan"),
]

FALLBACK_RES_SEQ: Dict[str, int] = {
    "R2.1": 100,
    "R2.2": 101,
    "R3.1": 102,
    "R3.2": 103,
    "R3.3": 104,
    "R3.5": 106,
}


def parse_resource_tree(tree: Any, room_names: Iterable[str]) -> Dict[str, int]:
    """Collect ``resNm -> resSeq`` for the given rooms from a nested resource tree."""
    wanted = set(room_names)
    found: Dict[str, int] = {}
    stack: List[Any] = list(tree) if isinstance(tree, list) else [tree]
    while stack:
        node = stack.pop()
        if not isinstance(node, Mapping):
            continue
        name = node.get("resNm")
        try:
            seq = int(node.get("resSeq") or 0)
        except (TypeError, ValueError):
            seq = 0
        if name in wanted and seq:
            found[name] = seq
        children = node.get("children")
        if isinstance(children, list):
            stack.extend(children)
    return found


class RoomRegistry:
    """Two-tier room id lookup: ids read from the portal, then the static table."""

    def __init__(
        self,
        dynamic: Optional[Mapping[str, int]] = None,
        rooms: Optional[List[MeetingRoom]] = None,
        fallback: Optional[Mapping[str, int]] = None,
    ):
        self._rooms = list(rooms if rooms is not None else TARGET_ROOMS)
        self._dynamic = dict(dynamic or {})
        self._fallback = dict(fallback if fallback is not None else FALLBACK_RES_SEQ)
        self._by_key = {room.name.lower(): room.name for room in self._rooms}

    @classmethod
    def from_resource_tree(cls, tree: Any, rooms: Optional[List[MeetingRoom]] = None) -> "RoomRegistry":
        room_list = rooms if rooms is not None else TARGET_ROOMS
        dynamic = parse_resource_tree(tree, [room.name for room in room_list]) if tree else {}
        if not dynamic:
            logger.warning("Resource tree listed none of the target rooms; using the static room id table")
        return cls(dynamic=dynamic, rooms=room_list)

    @property
    def names(self) -> List[str]:
        return [room.name for room in self._rooms]

    def canonical_name(self, name: str) -> str:
        """Return the configured spelling of ``name`` (case-insensitive)."""
        key = name.strip().lower()
        if key not in self._by_key:
            raise UnknownRoomError(name, self.names)
        return self._by_key[key]

    def resolve(self, name: str) -> int:
        """Return the resource id of ``name``.

        Raises:
            UnknownRoomError: if the room is not a target room or has no id in
                either tier.
        """
        canonical = self.canonical_name(name)
        if canonical in self._dynamic:
            return self._dynamic[canonical]
        seq = self._fallback.get(canonical)
        if not seq:
            raise UnknownRoomError(name, self.names)
        logger.warning("Resource id for %s not found on the portal; falling back to static id %s", canonical, seq)
        return seq

    def name_for(self, res_seq: int) -> str:
        for name, seq in self._dynamic.items():
            if seq == res_seq:
                return name
        for name, seq in self._fallback.items():
            if seq == res_seq:
                return name
        return ""

    def rooms(self) -> List[MeetingRoom]:
        """Target rooms with their resolved resource ids (0 when unknown)."""
        resolved: List[MeetingRoom] = []
        for room in self._rooms:
            seq = self._dynamic.get(room.name) or self._fallback.get(room.name) or room.res_seq
            resolved.append(room.model_copy(update={"res_seq": seq}))
        return resolved

    def room(self, name: str) -> MeetingRoom:
        canonical = self.canonical_name(name)
        return next(room for room in self.rooms() if room.name == canonical)
