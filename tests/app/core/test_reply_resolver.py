from app.core.reply_resolver import (
    ReplyResolver,
    header_message_id,
    internal_message_id,
    is_threadable,
    send_result_message_id,
)
from app.models.message import DIRECTION_OUTGOING, Message
from app.services.message_service import MessageService


def test_identifier_extractors():
    message = Message(
        id="internal-1",
        channel="email",
        headers={"message-id": "<h@example.com>"},
        send_result={"messageId": "sr-1"},
    )

    assert header_message_id(message) == "<h@example.com>"
    assert send_result_message_id(message) == "sr-1"
    assert internal_message_id(message) == "internal-1"


def test_extractors_return_none_when_missing():
    message = Message(channel="email", headers={}, send_result=None)

    assert header_message_id(message) is None
    assert send_result_message_id(message) is None


def test_email_identifiers_must_look_like_message_ids():
    email = Message(channel="email")
    whatsapp = Message(channel="whatsapp")

    assert is_threadable(email, "<abc@mail.example.com>")
    assert not is_threadable(email, "18c2f0a9b7d1")
    assert is_threadable(whatsapp, "wamid.HBgL")


def test_prefers_latest_inbound_with_provider_id(db, setup_thread, make_message):
    # A: older inbound without a usable id; B: newer inbound with one.
    make_message(setup_thread, 1000, provider_message_id="a-internal")
    make_message(
        setup_thread,
        2000,
        provider_message_id="<b@example.com>",
        headers={"Message-ID": "<b@example.com>"},
    )
    make_message(setup_thread, 3000, direction=DIRECTION_OUTGOING)

    target = ReplyResolver(MessageService(db)).find_reply_target(setup_thread.id)

    assert target == "<b@example.com>"


def test_skips_email_ids_that_cannot_thread(db, setup_thread, make_message):
    make_message(
        setup_thread,
        1000,
        provider_message_id="<a@example.com>",
        headers={"Message-ID": "<a@example.com>"},
    )
    make_message(
        setup_thread, 2000, provider_message_id="x", headers={"Message-ID": "gmail-123"}
    )

    target = ReplyResolver(MessageService(db)).find_reply_target(setup_thread.id)

    assert target == "<a@example.com>"


def test_falls_back_to_oldest_inbound_internal_id(db, setup_thread, make_message):
    oldest = make_message(setup_thread, 1000, provider_message_id="p1")
    make_message(setup_thread, 2000, provider_message_id="p2")

    target = ReplyResolver(MessageService(db)).find_reply_target(setup_thread.id)

    assert target == oldest.id


def test_no_inbound_messages_returns_none(db, setup_thread, make_message):
    make_message(setup_thread, 1000, direction=DIRECTION_OUTGOING)

    assert ReplyResolver(MessageService(db)).find_reply_target(setup_thread.id) is None
