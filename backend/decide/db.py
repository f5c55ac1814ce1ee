from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, ValidationError
from sqlalchemy import DateTime, String, Text, create_engine, delete, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from decide.models import UserVote

logger = logging.getLogger("decide.db")


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RoomRow(Base):
    __tablename__ = "room"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    state: Mapped[str] = mapped_column(Text, nullable=False)
    last_active: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True, default=_utcnow)


class StoreUnavailable(Exception):
    """The room database could not be read or written."""


@dataclass
class RoomRecord:
    """Durable state of a room; the database copy is the source of truth."""

    choices: List[str]
    votes: Dict[str, UserVote] = field(default_factory=dict)
    tallied: bool = False


# ---------------- Stored payload versions ----------------
class RoomStateV1(BaseModel):
    version: Literal[1] = 1
    choices: List[str]
    votes: Dict[str, UserVote]
    tallied: bool


def encode_record(record: RoomRecord) -> str:
    state = RoomStateV1(choices=record.choices, votes=record.votes, tallied=record.tallied)
    return state.model_dump_json()


def decode_record(raw: str) -> RoomRecord:
    """
    Parse a stored payload of any known version.

    Raises ``ValueError`` for an unknown version or a malformed payload.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"room state is not JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("room state is not an object")
    version = payload.get("version")
    if version == 1:
        try:
            state = RoomStateV1.model_validate(payload)
        except ValidationError as exc:
            raise ValueError(f"invalid v{version} room state: {exc}") from exc
        return RoomRecord(choices=state.choices, votes=dict(state.votes), tallied=state.tallied)
    raise ValueError(f"unknown room state version {version!r}")


# ---------------- Engine ----------------
def make_engine(database_url: str) -> Engine:
    if not database_url.startswith("sqlite"):
        return create_engine(database_url)
    # check_same_thread=False is required for SQLite since store calls run in the threadpool
    kwargs = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(engine)


class RoomStore:
    """Blocking access to the ``room`` table. Every failure surfaces as ``StoreUnavailable``."""

    def __init__(self, engine: Engine, clock: Callable[[], datetime] = _utcnow) -> None:
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        self._clock = clock

    def create(self, room_id: str, record: RoomRecord) -> None:
        try:
            with self._session_factory() as db:
                db.add(RoomRow(id=room_id, state=encode_record(record), last_active=self._clock()))
                db.commit()
        except SQLAlchemyError as exc:
            logger.error(f"Failed to insert room {room_id}: {exc}")
            raise StoreUnavailable(str(exc)) from exc

    def read(self, room_id: str) -> Optional[RoomRecord]:
        try:
            with self._session_factory() as db:
                raw = db.execute(select(RoomRow.state).where(RoomRow.id == room_id)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error(f"Failed to read room {room_id}: {exc}")
            raise StoreUnavailable(str(exc)) from exc
        if raw is None:
            return None
        try:
            return decode_record(raw)
        except ValueError as exc:
            logger.error(f"Failed to deserialize room {room_id} state: {exc}")
            return None

    def write(self, room_id: str, record: RoomRecord) -> bool:
        """Replace the stored state. Returns ``False`` if the room does not exist."""
        stmt = (
            update(RoomRow)
            .where(RoomRow.id == room_id)
            .values(state=encode_record(record), last_active=self._clock())
        )
        try:
            with self._session_factory() as db:
                updated = db.execute(stmt).rowcount
                db.commit()
        except SQLAlchemyError as exc:
            logger.error(f"Failed to update room {room_id}: {exc}")
            raise StoreUnavailable(str(exc)) from exc
        return updated == 1

    def touch_activity(self, room_id: str) -> None:
        stmt = update(RoomRow).where(RoomRow.id == room_id).values(last_active=self._clock())
        try:
            with self._session_factory() as db:
                db.execute(stmt)
                db.commit()
        except SQLAlchemyError as exc:
            logger.error(f"Failed to update room {room_id} last active: {exc}")
            raise StoreUnavailable(str(exc)) from exc

    def delete_stale(self, threshold: timedelta) -> int:
        """Delete every room not active within ``threshold``; returns how many were removed."""
        cutoff = self._clock() - threshold
        try:
            with self._session_factory() as db:
                deleted = db.execute(delete(RoomRow).where(RoomRow.last_active < cutoff)).rowcount
                db.commit()
        except SQLAlchemyError as exc:
            logger.error(f"Failed to delete stale rooms: {exc}")
            raise StoreUnavailable(str(exc)) from exc
        return deleted or 0


__all__ = [
    "Base",
    "RoomRecord",
    "RoomRow",
    "RoomStore",
    "StoreUnavailable",
    "decode_record",
    "encode_record",
    "init_db",
    "make_engine",
]
