from __future__ import annotations

import argparse
from datetime import timedelta

from decide.core.settings import get_settings
from decide.db import RoomStore, StoreUnavailable, init_db, make_engine


def sweep_rooms(database_url: str, retention_hours: float) -> int:
    engine = make_engine(database_url)
    try:
        init_db(engine)
        deleted = RoomStore(engine).delete_stale(timedelta(hours=retention_hours))
    except StoreUnavailable as exc:
        print(f"[ERR] Room store unavailable: {exc}")
        return 2
    finally:
        engine.dispose()
    print(f"[OK] Deleted {deleted} rooms inactive for more than {retention_hours:g}h from {database_url}")
    return 0


def _parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Delete voting rooms that have been inactive past the retention window."
    )
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help="SQLAlchemy URL of the room database. Defaults to DATABASE_URL.",
    )
    parser.add_argument(
        "--retention-hours",
        type=float,
        default=settings.room_retention_hours,
        help="Rooms idle for longer than this are deleted. Defaults to ROOM_RETENTION_HOURS.",
    )
    return parser.parse_args()


if __name__ == "__main__":
    options = _parse_args()
    raise SystemExit(sweep_rooms(options.database_url, options.retention_hours))
