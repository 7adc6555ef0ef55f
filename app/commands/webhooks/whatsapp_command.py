"""
Command to handle WhatsApp Cloud API webhooks.

GET performs the subscription handshake; POST validates the signature and
ingests every message of the delivery.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import HTTPException, Request

from app.commands.webhooks.base_webhook_command import BaseWebhookCommand

logger = logging.getLogger(__name__)


class WhatsAppWebhookCommand(BaseWebhookCommand):
    def verify_subscription(
        self, mode: Optional[str], token: Optional[str], challenge: Optional[str]
    ) -> str:
        """
        Echo hub.challenge for a valid subscription handshake.

        Raises:
            HTTPException: 503 if WhatsApp is disabled, 403 on token mismatch.
        """
        adapter = self.get_whatsapp_adapter()
        if adapter is None:
            raise HTTPException(
                status_code=503,
                detail="WhatsApp integration is not configured or disabled",
            )
        echoed = adapter.verify_subscription(mode, token, challenge)
        if echoed is None:
            logger.warning("WhatsApp webhook verification failed (mode=%s)", mode)
            raise HTTPException(status_code=403, detail="Verification failed")
        return echoed

    async def execute(self, request: Request) -> dict[str, Any]:
        """
        Ingest a WhatsApp delivery.

        Raises:
            HTTPException: 503 if WhatsApp is disabled, 403 on invalid
                signature, 400 on an unparseable body.
        """
        adapter = self.get_whatsapp_adapter()
        if adapter is None:
            raise HTTPException(
                status_code=503,
                detail="WhatsApp integration is not configured or disabled",
            )
        raw_body = await request.body()
        headers = dict(request.headers) if request.headers else {}
        if not adapter.verify_webhook(raw_body, headers):
            raise HTTPException(status_code=403, detail="Invalid webhook signature")
        payload = await self.read_json(request)
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Body must be a JSON object")
        return self.ingest_payload(adapter, payload).as_response()
