"""
Per-connection notification slots.

Each connection owns one slot holding only the most recent notification.
Publishing never waits on the reader: a newer value replaces an unread one,
so a stalled client costs one notification of memory and simply skips to
the latest state when it catches up.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Optional

from decide.models import ClientNotification

_handle_ids = itertools.count(1)


class NotificationSlot:
    def __init__(self) -> None:
        self._value: Optional[ClientNotification] = None
        self._pending = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def latest(self) -> Optional[ClientNotification]:
        return self._value

    @property
    def pending(self) -> bool:
        return self._pending.is_set()

    def publish(self, value: ClientNotification) -> bool:
        """Overwrite the slot and wake the reader. Returns ``False`` once closed."""
        if self._closed:
            return False
        self._value = value
        self._pending.set()
        return True

    async def next(self) -> ClientNotification:
        """Wait for a value not yet returned by this method and return the newest one."""
        await self._pending.wait()
        self._pending.clear()
        if self._value is None:
            raise RuntimeError("notification slot woken without a value")
        return self._value

    def close(self) -> None:
        self._closed = True


@dataclass(eq=False)
class ConnectionHandle:
    """One live websocket; an identity may hold several (one per tab)."""

    slot: NotificationSlot = field(default_factory=NotificationSlot)
    id: int = field(default_factory=lambda: next(_handle_ids))

    def __repr__(self) -> str:
        return f"ConnectionHandle(id={self.id})"
