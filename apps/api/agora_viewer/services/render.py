"""Render slots that remote and local video tracks play into."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from .engine import Uid

LOCAL_PLAYER_SLOT = "local-player"

ClearCallback = Callable[[], None]


def remote_slot_key(uid: Uid) -> str:
    return f"user-{uid}"


class RenderSurface(Protocol):
    def find_slot(self, key: str) -> Optional[Any]: ...

    def clear_slot(self, key: str) -> None: ...


@dataclass(slots=True)
class _Slot:
    target: Any
    on_clear: Optional[ClearCallback] = None


class RenderSlots:
    """In-memory registry the UI layer mounts playback targets into.

    Slots may appear after the controller first looks for them; callers retry.
    """

    def __init__(self) -> None:
        self._slots: Dict[str, _Slot] = {}

    def mount(self, key: str, target: Any, on_clear: Optional[ClearCallback] = None) -> None:
        self._slots[key] = _Slot(target=target, on_clear=on_clear)

    def unmount(self, key: str) -> None:
        self._slots.pop(key, None)

    def find_slot(self, key: str) -> Optional[Any]:
        slot = self._slots.get(key)
        return slot.target if slot else None

    def clear_slot(self, key: str) -> None:
        slot = self._slots.get(key)
        if slot and slot.on_clear:
            slot.on_clear()
