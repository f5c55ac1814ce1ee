from decide.rooms.broadcast import ConnectionHandle, NotificationSlot
from decide.rooms.coordinator import RoomCoordinator, ServerRoom
from decide.rooms.errors import RoomNotFound
from decide.rooms.sweeper import RetentionSweeper

__all__ = [
    "ConnectionHandle",
    "NotificationSlot",
    "RetentionSweeper",
    "RoomCoordinator",
    "RoomNotFound",
    "ServerRoom",
]
