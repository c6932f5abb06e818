"""
P24 Client - Secure Logging Utilities.

============================================================
PURPOSE
============================================================
Masking helpers for everything the client logs:
- Card numbers (first 6 / last 4 digits only)
- Merchant signatures
- Request/response bodies (signature and card props)

============================================================
SECURITY REQUIREMENTS
============================================================
1. NEVER log the merchant password
2. NEVER log a full signature or card number
3. Log a hash of the body instead of the body where possible

============================================================
"""

import hashlib
import logging
import re
from typing import Optional


logger = logging.getLogger(__name__)


# ============================================================
# SENSITIVE DATA PATTERNS
# ============================================================

# <prop> names that carry card numbers
SENSITIVE_PROPS = {"cardnum", "card"}

_SIGNATURE_ELEMENT = re.compile(rb"(<signature>)([^<]*)(</signature>)")
_CARD_PROP = re.compile(rb'(name="(?:' + b"|".join(name.encode() for name in sorted(SENSITIVE_PROPS)) + rb')" value=")([0-9]*)(")')
_CARD_NUMBER = re.compile(r"\b[0-9]{16}\b")


# ============================================================
# MASKING FUNCTIONS
# ============================================================

def mask_value(value: str, show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_card_number(card_number: str) -> str:
    """Mask a card number keeping the BIN and the last four digits."""
    if not card_number or len(card_number) < 10:
        return "***"
    return f"{card_number[:6]}******{card_number[-4:]}"


def mask_signature(signature: str) -> str:
    return mask_value(signature, show_chars=6)


def mask_text(text: str) -> str:
    """Mask every sixteen digit number inside free text."""
    return _CARD_NUMBER.sub(lambda m: mask_card_number(m.group(0)), text)


def mask_body(body: Optional[bytes]) -> Optional[bytes]:
    """
    Mask signatures and card number props in an XML document.

    Args:
        body: Request or response document

    Returns:
        Copy of body safe to log
    """
    if not body:
        return body
    body = _SIGNATURE_ELEMENT.sub(
        lambda m: m.group(1) + mask_signature(m.group(2).decode("ascii", "replace")).encode() + m.group(3),
        body,
    )
    return _CARD_PROP.sub(
        lambda m: m.group(1) + mask_card_number(m.group(2).decode("ascii")).encode() + m.group(3),
        body,
    )


def body_hash(body: Optional[bytes]) -> str:
    """Short stable fingerprint of a body for log correlation."""
    if not body:
        return "-"
    return hashlib.sha256(body).hexdigest()[:12]
