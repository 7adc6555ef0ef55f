from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from app.exceptions import ThreadAccessDeniedError
from app.models.thread import Thread
from app.services.thread_service import ThreadService


def test_resolve_or_create_is_stable(db, owner_user_id):
    service = ThreadService(db)

    first = service.resolve_or_create_thread(owner_user_id, "a@example.com", "email")
    second = service.resolve_or_create_thread(owner_user_id, "a@example.com", "email")

    assert first == second
    assert service.get_thread(first).message_count == 0


def test_distinct_contacts_get_distinct_threads(db, owner_user_id):
    service = ThreadService(db)

    first = service.resolve_or_create_thread(owner_user_id, "a@example.com")
    second = service.resolve_or_create_thread(owner_user_id, "b@example.com")

    assert first != second


def test_same_contact_for_different_owners_gets_distinct_threads(db, faker):
    service = ThreadService(db)

    first = service.resolve_or_create_thread(faker.uuid4(), "a@example.com")
    second = service.resolve_or_create_thread(faker.uuid4(), "a@example.com")

    assert first != second


def test_create_race_returns_the_winner(db, owner_user_id):
    service = ThreadService(db)
    winner_id = service.resolve_or_create_thread(owner_user_id, "+15551234567")
    winner = service.get_thread(winner_id)

    # The loser's first lookup misses; its insert then hits the unique constraint.
    with patch.object(
        service, "get_thread_by_contact", side_effect=[None, winner]
    ):
        loser_id = service.resolve_or_create_thread(owner_user_id, "+15551234567")

    assert loser_id == winner_id


def test_access_owner_participant_and_stranger(db, setup_thread, faker):
    service = ThreadService(db)
    participant = faker.uuid4()
    stranger = faker.uuid4()
    service.add_participant(setup_thread.id, participant)

    assert service.user_has_access_to_thread(setup_thread.owner_user_id, setup_thread.id)
    assert service.user_has_access_to_thread(participant, setup_thread.id)
    assert not service.user_has_access_to_thread(stranger, setup_thread.id)
    assert not service.user_has_access_to_thread(stranger, "missing-thread")
    with pytest.raises(ThreadAccessDeniedError):
        service.ensure_access(stranger, setup_thread.id)


def test_add_participant_is_idempotent(db, setup_thread, faker):
    service = ThreadService(db)
    participant = faker.uuid4()

    service.add_participant(setup_thread.id, participant)
    thread = service.add_participant(setup_thread.id, participant)

    assert thread.participants == [participant]


def test_record_message_counts_only_new_messages(db, setup_thread):
    service = ThreadService(db)

    service.record_message(setup_thread.id, 2_000_000, counted=True)
    service.record_message(setup_thread.id, 1_000_000, counted=False)

    thread = service.get_thread(setup_thread.id)
    db.refresh(thread)
    assert thread.message_count == 1
    expected = datetime.fromtimestamp(2000, tz=timezone.utc).replace(tzinfo=None)
    assert thread.last_message_at == expected


def test_list_messages_uses_canonical_id(db, setup_thread, make_message):
    make_message(setup_thread, 1000, provider_message_id="a")

    messages = ThreadService(db, legacy_lookup_enabled=True).list_messages(
        setup_thread.id
    )

    assert [m.provider_message_id for m in messages] == ["a"]


def test_list_messages_falls_back_to_legacy_identifier(
    db, owner_user_id, make_message
):
    service = ThreadService(db, legacy_lookup_enabled=True)
    thread_id = service.resolve_or_create_thread(
        owner_user_id, "+15551234567", "whatsapp"
    )
    thread = service.get_thread(thread_id)
    make_message(thread, 1000, provider_message_id="wamid.1", thread_id="+15551234567")

    messages = service.list_messages(thread_id)

    assert [m.provider_message_id for m in messages] == ["wamid.1"]


def test_list_messages_legacy_lookup_can_be_disabled(db, owner_user_id, make_message):
    service = ThreadService(db, legacy_lookup_enabled=False)
    thread_id = service.resolve_or_create_thread(owner_user_id, "+15551234567")
    thread = service.get_thread(thread_id)
    make_message(thread, 1000, provider_message_id="wamid.1", thread_id="+15551234567")

    assert service.list_messages(thread_id) == []


def test_list_threads_for_user_includes_shared_threads(db, setup_thread, faker):
    service = ThreadService(db)
    participant = faker.uuid4()
    own_thread = service.resolve_or_create_thread(participant, "c@example.com")
    service.add_participant(setup_thread.id, participant)

    threads = service.list_threads_for_user(participant)

    assert {t.id for t in threads} == {own_thread, setup_thread.id}


def test_record_message_ignores_stale_in_session_state(db, setup_thread):
    service = ThreadService(db)
    newer = datetime.fromtimestamp(3000, tz=timezone.utc).replace(tzinfo=None)
    # A concurrent writer already moved the row forward; the identity map
    # still holds last_message_at=None and message_count=0.
    db.query(Thread).filter(Thread.id == setup_thread.id).update(
        {Thread.last_message_at: newer, Thread.message_count: 5},
        synchronize_session=False,
    )
    assert setup_thread.last_message_at is None

    service.record_message(setup_thread.id, 1_000_000, counted=True)

    db.refresh(setup_thread)
    assert setup_thread.last_message_at == newer
    assert setup_thread.message_count == 6


def test_legacy_lookup_only_returns_rows_of_thread_members(
    db, make_message, faker
):
    service = ThreadService(db, legacy_lookup_enabled=True)
    alice, bob = faker.uuid4(), faker.uuid4()
    alice_thread = service.get_thread(
        service.resolve_or_create_thread(alice, "+15551234567", "whatsapp")
    )
    bob_thread = service.get_thread(
        service.resolve_or_create_thread(bob, "+15551234567", "whatsapp")
    )
    make_message(
        alice_thread, 1000, provider_message_id="wamid.alice", thread_id="+15551234567"
    )

    assert service.list_messages(bob_thread.id) == []
    assert [m.provider_message_id for m in service.list_messages(alice_thread.id)] == [
        "wamid.alice"
    ]

    service.add_participant(alice_thread.id, bob)
    assert service.list_messages(bob_thread.id) == []


def test_list_threads_for_user_excludes_unshared_threads(db, setup_thread, faker):
    service = ThreadService(db)
    participant = faker.uuid4()
    service.add_participant(setup_thread.id, participant)
    for _ in range(3):
        service.resolve_or_create_thread(faker.uuid4(), faker.email())

    threads = service.list_threads_for_user(participant)

    assert [t.id for t in threads] == [setup_thread.id]
    assert service.list_threads_for_user(faker.uuid4()) == []
