"""Fixtures for threads, messages and connected accounts."""

import pytest

from app.models.connected_account import ConnectedAccount
from app.models.message import DIRECTION_INCOMING, Message
from app.models.thread import Thread

BUSINESS_NUMBER = "+15550001111"
MAILBOX = "owner@inbox.example.com"


@pytest.fixture(scope="function")
def owner_user_id(faker):
    return faker.uuid4()


@pytest.fixture(scope="function")
def setup_thread(db, faker, owner_user_id):
    """Email thread between the owner and a random contact."""
    thread = Thread(
        owner_user_id=owner_user_id,
        contact_identifier=faker.email().lower(),
        channel="email",
        message_count=0,
    )
    db.add(thread)
    db.commit()
    db.refresh(thread)
    return thread


@pytest.fixture(scope="function")
def setup_whatsapp_account(db, owner_user_id):
    account = ConnectedAccount(
        channel="whatsapp", address=BUSINESS_NUMBER, user_id=owner_user_id
    )
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


@pytest.fixture(scope="function")
def setup_email_account(db, owner_user_id):
    account = ConnectedAccount(channel="email", address=MAILBOX, user_id=owner_user_id)
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


@pytest.fixture
def make_message(db):
    """Insert a message row directly; returns a factory."""

    def _make(thread, timestamp, direction=DIRECTION_INCOMING, **kwargs):
        incoming = direction == DIRECTION_INCOMING
        provider_message_id = kwargs.pop("provider_message_id", None)
        message = Message(
            thread_id=kwargs.pop("thread_id", thread.id),
            timestamp=timestamp,
            provider_message_id=provider_message_id,
            dedup_key=provider_message_id if incoming else None,
            channel=kwargs.pop("channel", thread.channel or "email"),
            direction=direction,
            body=kwargs.pop("body", "hello"),
            headers=kwargs.pop("headers", {}),
            owner_user_id=thread.owner_user_id,
            is_unread=incoming,
            **kwargs,
        )
        db.add(message)
        db.commit()
        db.refresh(message)
        return message

    return _make

