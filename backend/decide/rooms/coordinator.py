"""
Room state coordinator.

The database holds the authoritative room record (choices, ballots and the
tallied flag).  The coordinator keeps, for every room with a live connection,
the set of connection handles and a cache of the tally.  Every mutation runs
under one process-wide lock, including the database round trip, and fans
out the new state before the lock is released.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import timedelta
from typing import Dict, List, Optional

from starlette.concurrency import run_in_threadpool

from decide.condorcet import ranked_pairs
from decide.db import RoomRecord, RoomStore
from decide.models import (
    ClientNotification,
    ClientStatus,
    CondorcetTally,
    UserVote,
    VoteView,
    VotingResults,
)
from decide.rooms.broadcast import ConnectionHandle
from decide.rooms.errors import RoomNotFound
from decide.rooms.ids import new_room_id

logger = logging.getLogger("decide.rooms")


def calculate_room_tally(record: RoomRecord) -> CondorcetTally:
    ballots = [vote.selections for vote in record.votes.values()]
    return ranked_pairs(len(record.choices), ballots)


class ServerRoom:
    """In-memory state of a live room."""

    def __init__(self) -> None:
        # Each client identity may have multiple tabs open.
        self.clients: Dict[str, List[ConnectionHandle]] = {}
        # The record's tallied flag decides whether voting is over; this cache
        # only avoids re-running the tally on every broadcast.
        self.results_cache: Optional[CondorcetTally] = None

    @property
    def connection_count(self) -> int:
        return sum(len(handles) for handles in self.clients.values())

    def add_client(self, client_id: str, handle: ConnectionHandle) -> None:
        self.clients.setdefault(client_id, []).append(handle)

    def remove_client(self, client_id: str, handle: ConnectionHandle) -> None:
        handles = self.clients.get(client_id)
        if handles is None:
            return
        if handle in handles:
            handles.remove(handle)
        if not handles:
            del self.clients[client_id]

    def update_results_cache(self, record: RoomRecord) -> None:
        if record.tallied and self.results_cache is None:
            self.results_cache = calculate_room_tally(record)
        elif not record.tallied and self.results_cache is not None:
            logger.error("Results cache incorrectly populated")
            self.results_cache = None

    def get_client_notification(self, client_id: str, record: RoomRecord) -> ClientNotification:
        if record.tallied != (self.results_cache is not None):
            logger.error(
                f"Results cache incorrect. Tallied: {record.tallied}, cache: {self.results_cache is not None}"
            )
            self.results_cache = calculate_room_tally(record) if record.tallied else None

        results = None
        if self.results_cache is not None:
            results = VotingResults(tally=self.results_cache, votes=list(record.votes.values()))
        return ClientNotification(
            status=ClientStatus.connected,
            vote=VoteView(
                choices=list(record.choices),
                your_vote=record.votes.get(client_id),
                num_votes=len(record.votes),
                num_players=len(self.clients),
                results=results,
            ),
        )

    def broadcast(self, record: RoomRecord) -> None:
        self.update_results_cache(record)
        for client_id, handles in self.clients.items():
            # One view per identity; every tab of that identity sees the same one.
            notification = self.get_client_notification(client_id, record)
            for handle in handles:
                handle.slot.publish(notification)


class RoomCoordinator:
    def __init__(self, store: RoomStore, retention: timedelta = timedelta(hours=24)) -> None:
        self._store = store
        self._retention = retention
        self._rooms: Dict[str, ServerRoom] = {}
        # One lock for every room: operations on unrelated rooms also queue here.
        self._lock = asyncio.Lock()

    @property
    def store(self) -> RoomStore:
        return self._store

    def live_rooms(self) -> List[str]:
        return list(self._rooms)

    def cached_tally(self, room_id: str) -> Optional[CondorcetTally]:
        room = self._rooms.get(room_id)
        return room.results_cache if room else None

    async def create_room(self, choices: List[str]) -> str:
        room_id = new_room_id()
        record = RoomRecord(choices=list(choices), votes={}, tallied=False)
        async with self._lock:
            await run_in_threadpool(self._store.create, room_id, record)
        logger.info(f"created room {room_id} with {len(record.choices)} choices")
        return room_id

    async def register_client(self, room_id: str, client_id: str, handle: ConnectionHandle) -> None:
        async with self._lock:
            record = await run_in_threadpool(self._store.read, room_id)
            if record is None:
                logger.info(f"client {client_id} gave invalid room {room_id}")
                raise RoomNotFound(room_id)
            await run_in_threadpool(self._store.touch_activity, room_id)
            room = self._rooms.setdefault(room_id, ServerRoom())
            room.add_client(client_id, handle)
            room.broadcast(record)

    async def submit_vote(self, room_id: str, client_id: str, vote: UserVote) -> None:
        async with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                logger.debug(f"ignoring vote from {client_id} for room {room_id} with no live clients")
                return
            record = await run_in_threadpool(self._store.read, room_id)
            if record is None:
                self._evict_missing(room_id, room)
                return
            if record.tallied:
                logger.info(f"client {client_id} voted in room {room_id} after tally; vote discarded")
                room.broadcast(record)
                return
            record.votes[client_id] = vote
            if not await run_in_threadpool(self._store.write, room_id, record):
                self._evict_missing(room_id, room)
                return
            room.results_cache = None
            room.broadcast(record)

    async def tally(self, room_id: str) -> None:
        async with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                logger.debug(f"ignoring tally for room {room_id} with no live clients")
                return
            record = await run_in_threadpool(self._store.read, room_id)
            if record is None:
                self._evict_missing(room_id, room)
                return
            if not record.tallied:
                record.tallied = True
                if not await run_in_threadpool(self._store.write, room_id, record):
                    self._evict_missing(room_id, room)
                    return
            room.broadcast(record)

    async def prune(self, room_id: str, client_id: str, handle: ConnectionHandle) -> None:
        async with self._lock:
            handle.slot.close()
            room = self._rooms.get(room_id)
            if room is None:
                return
            room.remove_client(client_id, handle)
            logger.debug(f"Room {room_id} has {room.connection_count} connections left")
            if not room.clients:
                # The database record outlives the in-memory room.
                del self._rooms[room_id]
                logger.debug(f"evicted room {room_id} from memory")
                return
            record = await run_in_threadpool(self._store.read, room_id)
            if record is None:
                self._evict_missing(room_id, room)
                return
            room.broadcast(record)

    async def sweep(self) -> int:
        """Keep live rooms fresh, then delete every room past the retention window."""
        start = time.monotonic()
        async with self._lock:
            for room_id in list(self._rooms):
                await run_in_threadpool(self._store.touch_activity, room_id)
            deleted = await run_in_threadpool(self._store.delete_stale, self._retention)
        logger.info(f"Cleaned {deleted} rooms in {time.monotonic() - start:.3f}s")
        return deleted

    def _evict_missing(self, room_id: str, room: ServerRoom) -> None:
        logger.error(f"Room {room_id} is live in memory but missing from the database")
        gone = ClientNotification(status=ClientStatus.invalid_room, vote=None)
        for handles in room.clients.values():
            for handle in handles:
                handle.slot.publish(gone)
                handle.slot.close()
        self._rooms.pop(room_id, None)
