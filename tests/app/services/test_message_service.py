from datetime import timedelta

import pytest

from app.exceptions import DuplicateMessageError
from app.models.message import DIRECTION_INCOMING, DIRECTION_OUTGOING, Message
from app.models.mixins import utcnow
from app.services.message_service import MessageService


def _incoming(thread, provider_message_id, **kwargs):
    return Message(
        thread_id=thread.id,
        provider_message_id=provider_message_id,
        channel="email",
        direction=DIRECTION_INCOMING,
        body=kwargs.pop("body", "hello"),
        owner_user_id=thread.owner_user_id,
        **kwargs,
    )


def _outgoing(thread, **kwargs):
    return Message(
        thread_id=thread.id,
        channel="email",
        direction=DIRECTION_OUTGOING,
        body="reply",
        owner_user_id=thread.owner_user_id,
        **kwargs,
    )


def test_append_incoming_marks_unread_and_sets_dedup_key(db, setup_thread):
    service = MessageService(db)

    stored = service.append(_incoming(setup_thread, "<m1@example.com>"))

    assert stored.is_unread is True
    assert stored.dedup_key == "<m1@example.com>"
    assert stored.timestamp > 0


def test_append_incoming_requires_provider_id(db, setup_thread):
    with pytest.raises(ValueError):
        MessageService(db).append(_incoming(setup_thread, None))


def test_append_duplicate_raises_with_existing_row(db, setup_thread):
    service = MessageService(db)
    first = service.append(_incoming(setup_thread, "<m1@example.com>"))

    with pytest.raises(DuplicateMessageError) as exc_info:
        service.append(_incoming(setup_thread, "<m1@example.com>"))

    assert exc_info.value.existing.id == first.id
    assert len(service.list_by_thread(setup_thread.id)) == 1


def test_outgoing_messages_are_not_deduplicated(db, setup_thread):
    service = MessageService(db)

    service.append(_outgoing(setup_thread))
    service.append(_outgoing(setup_thread))

    assert len(service.list_by_thread(setup_thread.id)) == 2


def test_timestamps_are_unique_and_increasing(db, setup_thread):
    service = MessageService(db)

    stored = [
        service.append(_incoming(setup_thread, f"<m{i}@example.com>"))
        for i in range(5)
    ]

    timestamps = [m.timestamp for m in stored]
    assert timestamps == sorted(timestamps)
    assert len(set(timestamps)) == 5


def test_timestamp_collision_is_retried(db, setup_thread):
    service = MessageService(db)
    first = service.append(_incoming(setup_thread, "<m1@example.com>"))

    second = service.append(
        _incoming(setup_thread, "<m2@example.com>", timestamp=first.timestamp)
    )

    assert second.timestamp > first.timestamp


def test_list_by_thread_is_ascending(db, setup_thread, make_message):
    make_message(setup_thread, 3000, provider_message_id="c")
    make_message(setup_thread, 1000, provider_message_id="a")
    make_message(setup_thread, 2000, provider_message_id="b")

    messages = MessageService(db).list_by_thread(setup_thread.id)

    assert [m.provider_message_id for m in messages] == ["a", "b", "c"]


def test_latest_and_oldest_inbound(db, setup_thread, make_message):
    make_message(setup_thread, 1000, provider_message_id="a")
    make_message(setup_thread, 2000, direction=DIRECTION_OUTGOING)
    make_message(setup_thread, 3000, provider_message_id="c")
    service = MessageService(db)

    latest = service.latest_inbound(setup_thread.id, limit=5)

    assert [m.provider_message_id for m in latest] == ["c", "a"]
    assert service.oldest_inbound(setup_thread.id).provider_message_id == "a"


def test_unread_count_and_mark_read_all(db, setup_thread, make_message):
    make_message(setup_thread, 1000, provider_message_id="a")
    make_message(setup_thread, 2000, provider_message_id="b")
    make_message(setup_thread, 3000, direction=DIRECTION_OUTGOING)
    service = MessageService(db)
    assert service.unread_count_for_thread(setup_thread.id) == 2

    updated = service.mark_read(setup_thread.id)

    assert updated == 2
    assert service.unread_count_for_thread(setup_thread.id) == 0


def test_mark_read_specific_ids(db, setup_thread, make_message):
    first = make_message(setup_thread, 1000, provider_message_id="a")
    make_message(setup_thread, 2000, provider_message_id="b")
    service = MessageService(db)

    updated = service.mark_read(setup_thread.id, [first.id])

    assert updated == 1
    assert service.unread_count_for_thread(setup_thread.id) == 1

    service.mark_read(setup_thread.id, ["b"])
    assert service.unread_count_for_thread(setup_thread.id) == 0


def test_list_threads_for_user(db, setup_thread, make_message, faker):
    make_message(setup_thread, 1000, provider_message_id="a")

    service = MessageService(db)

    assert service.list_threads_for_user(setup_thread.owner_user_id) == {
        setup_thread.id
    }
    assert service.list_threads_for_user(faker.uuid4()) == set()


def test_list_unpublished_skips_published_and_recent_rows(
    db, setup_thread, make_message
):
    service = MessageService(db)
    old = utcnow() - timedelta(minutes=10)
    pending = make_message(setup_thread, 1000, provider_message_id="p1", created_at=old)
    done = make_message(setup_thread, 2000, provider_message_id="p2", created_at=old)
    make_message(setup_thread, 3000, provider_message_id="p3")
    service.mark_published(done)

    rows = service.list_unpublished(utcnow() - timedelta(minutes=1))

    assert [row.id for row in rows] == [pending.id]
    assert done.published_at is not None
