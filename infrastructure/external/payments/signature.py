"""
Breeze webhook signature scheme.

The provider signs ``data`` only: keys sorted recursively, compact JSON with
slashes and non-ASCII left unescaped, HMAC-SHA256 keyed by the webhook
secret, base64 encoded.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
from typing import Any


def deep_sort_keys(value: Any) -> Any:
    """Return a copy with every mapping's keys sorted; list order is kept."""
    # Plain string order, unlike PHP ksort for numeric-looking keys ("9" vs "10"); keep in step with the signer.
    if isinstance(value, dict):
        return {k: deep_sort_keys(value[k]) for k in sorted(value)}
    if isinstance(value, list):
        return [deep_sort_keys(v) for v in value]
    return value


def canonical_json(data: Any) -> str:
    return json.dumps(
        deep_sort_keys(data),
        separators=(",", ":"),
        ensure_ascii=False,
    )


def compute_signature(data: Any, secret: str) -> str:
    digest = hmac.new(
        secret.encode("utf-8"),
        canonical_json(data).encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(data: Any, signature: str, secret: str) -> bool:
    """Constant-time check. Empty data, signature or secret never verify."""
    if not secret or not signature or not data:
        return False
    expected = compute_signature(data, secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))
