from __future__ import annotations

import secrets
import string
import uuid
from typing import Optional

ALPHABET = string.ascii_letters + string.digits
ROOM_ID_LENGTH = 20


def new_room_id() -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(ROOM_ID_LENGTH))


def parse_client_id(raw: Optional[str]) -> Optional[str]:
    """Return the canonical form of a client UUID, or ``None`` if ``raw`` is not one."""
    if not raw:
        return None
    try:
        return str(uuid.UUID(raw))
    except ValueError:
        return None
