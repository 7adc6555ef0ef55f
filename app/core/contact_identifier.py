"""Contact identifier normalization (email addresses, phone numbers)."""

from __future__ import annotations

import re
from email.utils import getaddresses, parseaddr
from typing import Iterable, Optional

_NON_DIGITS = re.compile(r"\D")


def normalize_phone_number(raw: str) -> str:
    """Strip everything but digits and prefix with '+'."""
    digits = _NON_DIGITS.sub("", raw or "")
    return f"+{digits}"


def extract_email_address(raw: Optional[str]) -> Optional[str]:
    """Return the lowercased address from a header value like 'Name <a@x.com>'."""
    if not raw:
        return None
    _, address = parseaddr(raw)
    address = address.strip().lower()
    return address if "@" in address else None


def parse_email_list(values: Optional[Iterable[str] | str]) -> list[str]:
    """Parse a comma separated header (or list of them) into lowercased addresses."""
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    addresses = []
    for _, address in getaddresses(list(values)):
        address = address.strip().lower()
        if "@" in address and address not in addresses:
            addresses.append(address)
    return addresses


def normalize_contact_identifier(channel: str, raw: str) -> str:
    """Canonical form used as the thread lookup key for a channel."""
    if channel == "whatsapp":
        return normalize_phone_number(raw)
    return extract_email_address(raw) or raw.strip().lower()


def looks_like_legacy_identifier(value: Optional[str]) -> bool:
    """
    True for raw contact addresses that were used as thread ids before
    opaque ids were introduced.
    """
    if not value:
        return False
    return "@" in value or value.startswith("+")
