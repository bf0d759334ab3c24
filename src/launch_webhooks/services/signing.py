"""Canonical payload serialization and HMAC signatures.

Receivers verify a delivery by rebuilding the canonical bytes from the
``event``, ``timestamp`` and ``data`` fields of the body (in that order,
compact separators, UTF-8, no ASCII escaping) and comparing the hex
HMAC-SHA256 against ``X-Webhook-Signature`` with :func:`verify_signature`.

Domain events serialize ``data`` as ``transactionHash, ledger, tokenAddress``
followed by the kind-specific fields, matching the platform's existing payloads.
"""
from __future__ import annotations

import hmac
import json
from hashlib import sha256
from typing import Any


def canonical_body(event: str, timestamp: str, data: dict[str, Any]) -> bytes:
    document = {"event": event, "timestamp": timestamp, "data": data}
    return json.dumps(document, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sign_payload(event: str, timestamp: str, data: dict[str, Any], secret: str) -> str:
    body_bytes = canonical_body(event, timestamp, data)
    return hmac.new(secret.encode("utf-8"), body_bytes, sha256).hexdigest()


def verify_signature(
    event: str,
    timestamp: str,
    data: dict[str, Any],
    secret: str,
    signature: str,
) -> bool:
    expected = sign_payload(event, timestamp, data, secret)
    return hmac.compare_digest(expected, signature)
