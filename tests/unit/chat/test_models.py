from datetime import datetime, timedelta, timezone

from src.chat.models import (
    MessageRole,
    SessionState,
    from_millis,
    new_message,
    next_timestamp,
    to_millis,
)


def test_millis_conversion_is_exact():
    moment = datetime(2024, 5, 1, 12, 30, 15, 123000, tzinfo=timezone.utc)
    assert from_millis(to_millis(moment)) == moment
    assert to_millis(moment.replace(tzinfo=None)) == to_millis(moment)


def test_timestamps_strictly_increase():
    stamps = [next_timestamp() for _ in range(200)]
    assert all(a < b for a, b in zip(stamps, stamps[1:]))


def test_timestamp_follows_given_instant():
    future = datetime.now(timezone.utc) + timedelta(seconds=5)
    assert next_timestamp(after=future) > future


def test_messages_created_in_one_tick_do_not_collide():
    messages = [new_message(MessageRole.USER, "same") for _ in range(100)]
    assert len({message.id for message in messages}) == 100
    assert messages[0].id.startswith("user-")


def test_session_state_busy():
    state = SessionState()
    assert state.busy is False
    state.restoring = True
    assert state.busy is True
    state.restoring = False
    state.pending = True
    assert state.busy is True
    state.pending = False
    state.creating = True
    assert state.busy is True
