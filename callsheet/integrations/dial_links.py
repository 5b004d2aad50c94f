"""Dialer and WhatsApp link construction.

Stored phone numbers are only whitespace-trimmed; any cleanup needed to
place a call happens here, at the calling surface.

Usage:
    from callsheet.integrations.dial_links import tel_link, whatsapp_link

    tel_link("+91 98450-12345")          # "tel:+919845012345"
    whatsapp_link("98450 12345", "+91")  # "https://wa.me/919845012345"
"""

import webbrowser
from typing import Optional

from callsheet.core.logging import get_logger

logger = get_logger(__name__)

WHATSAPP_BASE_URL = "https://wa.me/"


def normalize_for_dial(phone: str) -> str:
    """Keep digits, plus a leading "+" if the number has one.

    "(713) 555-1234" -> "7135551234"
    " +44 20 7946 0958" -> "+442079460958"
    """
    phone = (phone or "").strip()
    if phone.startswith("+"):
        return "+" + "".join(c for c in phone[1:] if c.isdigit())
    return "".join(c for c in phone if c.isdigit())


def tel_link(phone: str) -> Optional[str]:
    """tel: URI for a phone number, or None when it has no digits."""
    normalized = normalize_for_dial(phone)
    if not normalized.lstrip("+"):
        return None
    return f"tel:{normalized}"


def whatsapp_link(phone: str, default_country_code: Optional[str] = None) -> Optional[str]:
    """wa.me chat link for a phone number.

    Numbers without a "+" prefix get ``default_country_code`` prepended
    when one is given. wa.me expects digits only.

    Returns:
        Link, or None when the number has no digits
    """
    normalized = normalize_for_dial(phone)
    digits = normalized.lstrip("+")
    if not digits:
        return None

    if not normalized.startswith("+") and default_country_code:
        code = "".join(c for c in default_country_code if c.isdigit())
        if code and not digits.startswith(code):
            digits = code + digits

    return f"{WHATSAPP_BASE_URL}{digits}"


def dial(phone: str) -> bool:
    """Hand a tel: link to the system's registered dialer.

    Returns:
        True if a handler accepted the link
    """
    link = tel_link(phone)
    if link is None:
        logger.warning("Cannot dial number without digits", extra={"context": {"phone": phone}})
        return False

    try:
        opened = bool(webbrowser.open(link))
    except webbrowser.Error as e:
        logger.warning(f"No dialer available: {e}")
        return False

    logger.info("Dial requested", extra={"context": {"phone": link[4:], "opened": opened}})
    return opened
