"""
Shared batch ingestion for webhook commands.

Each record of a delivery is parsed, attributed to its owner and ingested on
its own; malformed or unattributable records are skipped and logged.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from app.adapters.base import BasePlatformAdapter
from app.commands.base_channel import BaseChannelCommand
from app.commands.ingest_message_command import IngestMessageCommand
from app.exceptions import MalformedPayloadError
from app.schemas.conversa import InboundMessage
from app.services.account_service import AccountService
from app.services.event_publisher import EventPublisher

logger = logging.getLogger(__name__)


@dataclass
class IngestCounts:
    accepted: int = 0
    duplicates: int = 0
    skipped: int = 0

    def as_response(self) -> dict[str, Any]:
        return {"status": "ok", **asdict(self)}


class BaseWebhookCommand(BaseChannelCommand):
    def __init__(self, db: Session, publisher: EventPublisher) -> None:
        self.db = db
        self.publisher = publisher
        self.account_service = AccountService(db)
        self.ingest_command = IngestMessageCommand(db, publisher)

    @staticmethod
    async def read_json(request: Request) -> Any:
        try:
            return await request.json()
        except ValueError as e:
            logger.warning("Webhook invalid JSON: %s", e)
            raise HTTPException(status_code=400, detail="Invalid JSON body") from e

    def resolve_owner(self, inbound: InboundMessage) -> str | None:
        if inbound.owner_user_id:
            return inbound.owner_user_id
        return self.account_service.find_owner(
            inbound.channel.value, inbound.account_address
        )

    def ingest_payload(
        self, adapter: BasePlatformAdapter, payload: Any
    ) -> IngestCounts:
        try:
            records = adapter.split_records(payload)
        except MalformedPayloadError as e:
            logger.warning("Rejected webhook payload: %s", e)
            raise HTTPException(status_code=400, detail=str(e)) from e

        counts = IngestCounts()
        for index, record in enumerate(records):
            try:
                inbound = adapter.parse_record(record)
            except MalformedPayloadError as e:
                logger.warning("Skipping malformed record %d: %s", index, e)
                counts.skipped += 1
                continue

            owner_user_id = self.resolve_owner(inbound)
            if owner_user_id is None:
                logger.warning(
                    "No connected account for %s address %s; skipping %s",
                    inbound.channel.value,
                    inbound.account_address,
                    inbound.provider_message_id,
                )
                counts.skipped += 1
                continue

            result = self.ingest_command.execute(inbound, owner_user_id)
            if result.duplicate:
                counts.duplicates += 1
            else:
                counts.accepted += 1
        logger.info(
            "Webhook processed: accepted=%d duplicates=%d skipped=%d",
            counts.accepted,
            counts.duplicates,
            counts.skipped,
        )
        return counts
