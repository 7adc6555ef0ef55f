"""Command to handle relayed Gmail messages (single payload or a list)."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request

from app.commands.webhooks.base_webhook_command import BaseWebhookCommand


class EmailWebhookCommand(BaseWebhookCommand):
    async def execute(self, request: Request) -> dict[str, Any]:
        adapter = self.get_email_adapter()
        if adapter is None:
            raise HTTPException(
                status_code=503,
                detail="Email integration is not configured or disabled",
            )
        payload = await self.read_json(request)
        return self.ingest_payload(adapter, payload).as_response()
