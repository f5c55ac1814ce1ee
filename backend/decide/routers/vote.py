import asyncio
import logging
import time
from typing import Optional, Union

import anyio
from fastapi import APIRouter, Depends, HTTPException, Query, Request, WebSocket, status
from starlette.websockets import WebSocketDisconnect

from decide.core.limiter import limiter, start_vote_limit
from decide.db import StoreUnavailable
from decide.models import (
    ClientNotification,
    ClientStatus,
    NewVoteRequest,
    NewVoteResponse,
    VoteCommand,
    command_name,
    parse_command,
)
from decide.rooms import ConnectionHandle, RoomCoordinator, RoomNotFound
from decide.rooms.ids import parse_client_id

logger = logging.getLogger("decide.ws")

router = APIRouter(prefix="/api", tags=["vote"])


def get_coordinator(request: Request) -> RoomCoordinator:
    return request.app.state.coordinator


# ---------------- Room creation ----------------
@router.post("/start_vote", response_model=NewVoteResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(start_vote_limit)
async def start_vote(
    request: Request,
    payload: NewVoteRequest,
    coordinator: RoomCoordinator = Depends(get_coordinator),
) -> NewVoteResponse:
    try:
        room_id = await coordinator.create_room(payload.choice_labels())
    except StoreUnavailable:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="store_unavailable")
    return NewVoteResponse(room_id=room_id, url=f"/vote/{room_id}")


# ---------------- Live voting connection ----------------
async def _send_notification(websocket: WebSocket, notification: ClientNotification) -> bool:
    serialized = notification.model_dump_json()
    logger.debug(f"Sending message: {serialized}")
    try:
        await websocket.send_text(serialized)
    except (WebSocketDisconnect, RuntimeError, OSError) as exc:
        logger.debug(f"Error sending message to client: {exc!r}")
        return False
    return True


async def _close(websocket: WebSocket) -> None:
    try:
        await websocket.close()
    except RuntimeError:
        pass


async def _reject(websocket: WebSocket, client_status: ClientStatus) -> None:
    await _send_notification(websocket, ClientNotification(status=client_status, vote=None))
    await _close(websocket)


async def _on_command(
    coordinator: RoomCoordinator,
    room_id: str,
    client_id: str,
    raw: Union[str, bytes],
) -> None:
    command = parse_command(raw)
    if command is None:
        logger.debug(f"Bad message: {raw!r}")
        return
    name = command_name(command)
    command_start = time.monotonic()
    try:
        if isinstance(command, VoteCommand):
            await coordinator.submit_vote(room_id, client_id, command.vote)
        else:
            await coordinator.tally(room_id)
    except StoreUnavailable:
        logger.error(f"{client_id} {name} failed: room store unavailable")
        return
    logger.info(f"{client_id} {name} {time.monotonic() - command_start:.4f}s")


async def _serve(
    websocket: WebSocket,
    coordinator: RoomCoordinator,
    room_id: str,
    client_id: str,
    handle: ConnectionHandle,
) -> None:
    """Relay notifications out and commands in until either direction fails."""
    receiver: Optional[asyncio.Future] = None
    notifier: Optional[asyncio.Future] = None
    try:
        while True:
            if receiver is None:
                receiver = asyncio.ensure_future(websocket.receive())
            if notifier is None:
                notifier = asyncio.ensure_future(handle.slot.next())
            done, _ = await asyncio.wait({receiver, notifier}, return_when=asyncio.FIRST_COMPLETED)

            if notifier in done:
                notification = notifier.result()
                notifier = None
                if not await _send_notification(websocket, notification):
                    break
                if notification.status is not ClientStatus.connected:
                    await _close(websocket)
                    break

            if receiver in done:
                try:
                    message = receiver.result()
                except (WebSocketDisconnect, RuntimeError) as exc:
                    logger.debug(f"Error reading client message: {exc!r}")
                    break
                receiver = None
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes")
                if raw is None:
                    continue
                await _on_command(coordinator, room_id, client_id, raw)
    finally:
        for pending in (receiver, notifier):
            if pending is not None and not pending.done():
                pending.cancel()


@router.websocket("/vote/{room_id}")
async def vote_socket(websocket: WebSocket, room_id: str, raw_client_id: Optional[str] = Query(None, alias="id")):
    coordinator: RoomCoordinator = websocket.app.state.coordinator
    await websocket.accept()

    client_id = parse_client_id(raw_client_id)
    if client_id is None:
        logger.debug(f"Failed to parse client UUID: {raw_client_id!r}")
        await _reject(websocket, ClientStatus.invalid_identity)
        return

    handle = ConnectionHandle()
    try:
        await coordinator.register_client(room_id, client_id, handle)
    except RoomNotFound:
        logger.debug(f"client {client_id} gave invalid room {room_id}")
        await _reject(websocket, ClientStatus.invalid_room)
        return
    except StoreUnavailable:
        logger.error(f"client {client_id} could not join room {room_id}: room store unavailable")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    logger.debug(f"client {client_id} connected to room {room_id}")
    try:
        await _serve(websocket, coordinator, room_id, client_id, handle)
    finally:
        # The task may already be cancelled by the server; the prune still has to finish.
        with anyio.CancelScope(shield=True):
            try:
                await coordinator.prune(room_id, client_id, handle)
            except StoreUnavailable:
                logger.error(f"Could not refresh room {room_id} after client {client_id} left")
        logger.debug(f"closed connection from client {client_id}")
