"""
Command to send an outbound message to a contact.

Resolves the thread and the reply target, sends via the channel adapter,
then stores the outgoing message and publishes its event.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.adapters.base import BasePlatformAdapter
from app.commands.base_channel import BaseChannelCommand
from app.core.contact_identifier import normalize_contact_identifier
from app.core.reply_resolver import ReplyResolver
from app.exceptions import ThreadAccessDeniedError
from app.models.message import DIRECTION_OUTGOING, Message
from app.models.thread import Thread
from app.schemas.conversa import OutboundMessage, OutboundSendResult
from app.services.event_publisher import EventPublisher
from app.services.message_service import MessageService
from app.services.thread_service import ThreadService

logger = logging.getLogger(__name__)


class SendOutboundCommand(BaseChannelCommand):
    """
    Command to send an outbound message on the specified channel.
    Replies thread against the best inbound message of the conversation.
    """

    def __init__(
        self,
        db: Session,
        publisher: EventPublisher,
        adapters: Optional[dict[Any, BasePlatformAdapter]] = None,
    ) -> None:
        self.db = db
        self.publisher = publisher
        self._adapters = adapters if adapters is not None else self.adapter_registry()
        self.message_service = MessageService(db)
        self.thread_service = ThreadService(db, message_service=self.message_service)
        self.reply_resolver = ReplyResolver(self.message_service)

    async def execute(self, body: OutboundMessage) -> dict[str, Any]:
        """
        Send the outbound message and persist it.

        Returns:
            dict: {"data": {"success": True, "thread_id", "message_id",
                "platform_message_id", "reply_to_message_id"}}.

        Raises:
            HTTPException: 400 if the channel is not enabled or does not
                match the thread, 403 if the user has no access to the thread,
                404 for an unknown thread, 502 if the provider failed to send.
        """
        adapter = self._adapters.get(body.channel)
        if adapter is None:
            raise HTTPException(
                status_code=400,
                detail=f"Channel {body.channel.value} is not enabled or not supported",
            )

        thread = self._resolve_thread(body)
        reply_to = body.reply_to_message_id or self.reply_resolver.find_reply_target(
            thread.id
        )
        outbound = body.model_copy(
            update={"thread_id": thread.id, "reply_to_message_id": reply_to}
        )

        result: OutboundSendResult = await adapter.send(
            outbound, thread.contact_identifier
        )
        if not result.success:
            raise HTTPException(
                status_code=502,
                detail="Platform API failed to send message",
            )

        message = self.message_service.append(
            self._build_message(outbound, thread, result)
        )
        self.thread_service.record_message(thread.id, message.timestamp, counted=True)
        if self.publisher.publish(message, thread) is not None:
            self.message_service.mark_published(message)
        return {
            "data": {
                "success": True,
                "thread_id": thread.id,
                "message_id": message.id,
                "platform_message_id": result.platform_message_id,
                "reply_to_message_id": reply_to,
            }
        }

    def _resolve_thread(self, body: OutboundMessage) -> Thread:
        if body.thread_id:
            thread = self.thread_service.get_thread(body.thread_id)
            if thread is None:
                raise HTTPException(status_code=404, detail="Thread not found")
            try:
                thread = self.thread_service.ensure_access(body.user_id, thread.id)
            except ThreadAccessDeniedError as e:
                raise HTTPException(status_code=403, detail=str(e)) from e
            if thread.channel and thread.channel != body.channel.value:
                raise HTTPException(
                    status_code=400,
                    detail=(
                        f"Thread {thread.id} is a {thread.channel} thread; "
                        f"cannot send on {body.channel.value}"
                    ),
                )
            return thread

        contact = normalize_contact_identifier(
            body.channel.value, body.contact_identifier
        )
        thread_id = self.thread_service.resolve_or_create_thread(
            body.user_id, contact, channel=body.channel.value
        )
        return self.thread_service.get_thread(thread_id)

    @staticmethod
    def _build_message(
        outbound: OutboundMessage, thread: Thread, result: OutboundSendResult
    ) -> Message:
        headers: dict[str, Any] = {}
        if result.platform_message_id:
            headers["Message-ID"] = result.platform_message_id
        if outbound.reply_to_message_id:
            headers["In-Reply-To"] = outbound.reply_to_message_id
            headers["References"] = outbound.reply_to_message_id
        if outbound.subject:
            headers["Subject"] = outbound.subject
        return Message(
            thread_id=thread.id,
            provider_message_id=result.platform_message_id,
            channel=outbound.channel.value,
            direction=DIRECTION_OUTGOING,
            provider=outbound.channel.value,
            subject=outbound.subject,
            body=outbound.body,
            html_body=outbound.html_body,
            headers=headers,
            send_result={
                "MessageId": result.platform_message_id,
                "ThreadId": result.platform_thread_id,
            },
            from_address=result.sender_address,
            to_addresses=[thread.contact_identifier],
            cc_addresses=list(outbound.cc),
            owner_user_id=thread.owner_user_id,
            is_unread=False,
        )
