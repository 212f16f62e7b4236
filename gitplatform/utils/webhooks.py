"""
Webhook signature verification.
"""

import hashlib
import hmac
import logging
from typing import Union

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def compute_signature(payload: Union[str, bytes], secret: Union[str, bytes]) -> str:
    """Hex HMAC-SHA256 of ``payload`` keyed with ``secret``."""
    return hmac.new(_to_bytes(secret), _to_bytes(payload), hashlib.sha256).hexdigest()


def verify_signature(
    payload: Union[str, bytes],
    signature: str,
    secret: Union[str, bytes],
    prefix: str = SIGNATURE_PREFIX,
) -> bool:
    """
    Verify an HMAC-SHA256 webhook signature in constant time.

    The signature may be given with or without ``prefix``. A mismatch is a
    plain ``False``; it is never retried.

    :param payload: Raw request body, exactly as received.
    :param signature: Signature header value.
    :param secret: Shared webhook secret.
    :param prefix: Expected algorithm prefix (``sha256=``).
    :return: True if the signature matches.
    """
    if not secret or not signature:
        logger.warning("Webhook verification attempted without secret or signature")
        return False

    provided = signature.strip()
    if prefix and provided.startswith(prefix):
        provided = provided[len(prefix):]

    expected = compute_signature(payload, secret)
    return hmac.compare_digest(expected.encode("ascii"), provided.encode("utf-8"))
