"""Channel adapters for email and WhatsApp."""

from app.adapters.base import BasePlatformAdapter
from app.adapters.email import EmailAdapter
from app.adapters.whatsapp import WhatsAppAdapter

__all__ = ["BasePlatformAdapter", "EmailAdapter", "WhatsAppAdapter"]
