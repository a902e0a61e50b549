"""HMAC-SHA256 verification of the x-body-signature header."""

import hashlib
import hmac
import json
import logging
from typing import Any, Mapping, Optional, Union

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-body-signature"


def canonical_json(body: Any) -> bytes:
    """Compact JSON, same bytes as JSON.stringify on the sender side."""
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def compute_signature(body: Union[bytes, Mapping[str, Any]], secret: str) -> str:
    raw = body if isinstance(body, bytes) else canonical_json(body)
    return hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()


def verify_signature(body: Union[bytes, Mapping[str, Any]], signature: Optional[str],
                     secret: Optional[str], parsed: Optional[Any] = None) -> bool:
    """
    Returns True when the signature matches or verification is not required.

    Verification is skipped (True) if either the secret or the signature is
    missing. ``body`` is hashed as-is when bytes; ``parsed`` is an optional
    already-decoded body whose canonical serialization is tried when the raw
    bytes do not match. Never raises.
    """
    if not secret or not signature:
        return True

    candidates = [body]
    if parsed is not None:
        candidates.append(parsed)

    for candidate in candidates:
        try:
            expected = compute_signature(candidate, secret)
            if hmac.compare_digest(expected, signature.strip().lower()):
                return True
        except (TypeError, ValueError) as e:
            logger.warning("Signature comparison failed: %s", e)
            return False

    return False
