"""Webhook command handlers."""

from app.commands.webhooks.email_command import EmailWebhookCommand
from app.commands.webhooks.whatsapp_command import WhatsAppWebhookCommand

__all__ = ["EmailWebhookCommand", "WhatsAppWebhookCommand"]
