"""
Base command for channel operations.

Provides a shared way to obtain configured channel adapters for use across
webhook and outbound commands.
"""

from __future__ import annotations

from app.adapters.base import BasePlatformAdapter
from app.adapters.email import EmailAdapter
from app.adapters.whatsapp import WhatsAppAdapter
from app.config import get_settings
from app.schemas.conversa import Channel


class BaseChannelCommand:
    """
    Base for channel commands.
    Provides configured adapters; a disabled channel yields None.
    """

    @staticmethod
    def get_whatsapp_adapter() -> WhatsAppAdapter | None:
        """Return configured WhatsAppAdapter or None if WhatsApp is disabled."""
        settings = get_settings()
        if not settings.whatsapp_enabled:
            return None
        return WhatsAppAdapter(
            verify_token=settings.whatsapp_verify_token,
            app_secret=settings.whatsapp_app_secret,
            access_token=settings.whatsapp_access_token,
            phone_number_id=settings.whatsapp_phone_number_id,
            api_base=settings.whatsapp_api_base,
            timeout=settings.outbound_timeout_seconds,
        )

    @staticmethod
    def get_email_adapter() -> EmailAdapter | None:
        """Return configured EmailAdapter or None if email is disabled."""
        settings = get_settings()
        if not settings.email_enabled:
            return None
        return EmailAdapter(
            send_api_url=settings.email_send_api_url,
            send_api_key=settings.email_send_api_key,
            timeout=settings.outbound_timeout_seconds,
        )

    @classmethod
    def adapter_registry(cls) -> dict[Channel, BasePlatformAdapter]:
        """Adapters that can send. Only enabled and configured channels are included."""
        settings = get_settings()
        registry: dict[Channel, BasePlatformAdapter] = {}
        whatsapp = cls.get_whatsapp_adapter()
        if (
            whatsapp is not None
            and settings.whatsapp_access_token
            and settings.whatsapp_phone_number_id
        ):
            registry[Channel.WHATSAPP] = whatsapp
        email = cls.get_email_adapter()
        if email is not None and settings.email_send_api_url:
            registry[Channel.EMAIL] = email
        return registry
