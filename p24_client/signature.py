"""
P24 Client - Request/Response Signing.

The P24 API authenticates each message with a chained hash over the
serialized content of its <data> element and the merchant password:

    signature = sha1(md5(payload + password))

as computed in PHP, i.e. the MD5 digest is hex-encoded to text before it
is hashed with SHA1. A binary chain produces an incompatible signature.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Union


def sign(payload: bytes, secret: str) -> str:
    """
    Sign payload with the merchant secret.

    Args:
        payload: Serialized <data> content
        secret: Merchant password

    Returns:
        Lower-case hex SHA1 of the hex MD5 of payload + secret
    """
    md5_hex = hashlib.md5(payload + secret.encode("utf-8")).hexdigest()  # nosec: required by the API
    return hashlib.sha1(md5_hex.encode("ascii")).hexdigest()  # nosec: required by the API


def verify(payload: bytes, secret: str, claimed_signature: str) -> bool:
    """Check that claimed_signature is the signature of payload."""
    return sign(payload, secret) == claimed_signature


@dataclass(frozen=True)
class MerchantSignature:
    """Merchant id and signature, the <merchant> element of every message."""

    merchant_id: str
    signature: str


@dataclass(frozen=True)
class Merchant:
    """
    P24 merchant credentials.

    The password never appears in repr() and is never logged.
    """

    id: str
    password: str = field(repr=False)

    def sign(self, payload: Union[bytes, str]) -> MerchantSignature:
        """Return the MerchantSignature of payload."""
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return MerchantSignature(merchant_id=self.id, signature=sign(payload, self.password))

    def verify(self, payload: Union[bytes, str], claimed: MerchantSignature) -> bool:
        """Check that claimed carries this merchant's id and payload's signature."""
        return claimed == self.sign(payload)
