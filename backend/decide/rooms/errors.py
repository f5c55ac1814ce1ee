class RoomNotFound(Exception):
    def __init__(self, room_id: str):
        super().__init__(f"room {room_id} does not exist")
        self.room_id = room_id
