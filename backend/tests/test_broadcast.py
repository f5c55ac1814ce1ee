import anyio
import pytest

from decide.models import ClientNotification, ClientStatus
from decide.rooms import ConnectionHandle, NotificationSlot

pytestmark = pytest.mark.anyio


def _note(status: ClientStatus) -> ClientNotification:
    return ClientNotification(status=status, vote=None)


async def test_latest_value_wins():
    slot = NotificationSlot()
    slot.publish(_note(ClientStatus.invalid_room))
    slot.publish(_note(ClientStatus.connected))

    assert (await slot.next()).status == ClientStatus.connected
    assert not slot.pending


async def test_next_waits_for_a_new_value():
    slot = NotificationSlot()
    slot.publish(_note(ClientStatus.connected))
    await slot.next()

    with anyio.move_on_after(0.05) as scope:
        await slot.next()
    assert scope.cancelled_caught

    slot.publish(_note(ClientStatus.invalid_room))
    with anyio.fail_after(1):
        assert (await slot.next()).status == ClientStatus.invalid_room


async def test_closed_slot_ignores_publish():
    slot = NotificationSlot()
    slot.close()
    assert slot.publish(_note(ClientStatus.connected)) is False
    assert slot.latest is None
    assert slot.closed


async def test_handles_are_distinct():
    first, second = ConnectionHandle(), ConnectionHandle()
    assert first != second
    assert first.id != second.id
    assert first.slot is not second.slot


async def test_wakeup_without_value_is_an_error():
    slot = NotificationSlot()
    slot._pending.set()

    with pytest.raises(RuntimeError):
        await slot.next()
