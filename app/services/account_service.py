"""Owner resolution for receiving addresses (mailboxes, WhatsApp business numbers)."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.contact_identifier import normalize_contact_identifier
from app.models.connected_account import ConnectedAccount

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_owner(self, channel: str, address: Optional[str]) -> Optional[str]:
        """Return the user id owning the address on the channel, or None."""
        if not address:
            return None
        normalized = normalize_contact_identifier(channel, address)
        account = (
            self.db.query(ConnectedAccount)
            .filter(
                ConnectedAccount.channel == channel,
                ConnectedAccount.address == normalized,
            )
            .first()
        )
        return account.user_id if account else None

    def link_account(self, channel: str, address: str, user_id: str) -> ConnectedAccount:
        """Connect an address to a user, replacing any previous owner."""
        normalized = normalize_contact_identifier(channel, address)
        account = (
            self.db.query(ConnectedAccount)
            .filter(
                ConnectedAccount.channel == channel,
                ConnectedAccount.address == normalized,
            )
            .first()
        )
        if account is None:
            account = ConnectedAccount(
                channel=channel, address=normalized, user_id=user_id
            )
            self.db.add(account)
        elif account.user_id != user_id:
            logger.info(
                "Reassigning %s account %s from %s to %s",
                channel,
                normalized,
                account.user_id,
                user_id,
            )
            account.user_id = user_id
        self.db.commit()
        self.db.refresh(account)
        return account
