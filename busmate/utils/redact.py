"""Secret redaction utility: strip credentials/PII from logs."""

from __future__ import annotations

import re

_PATTERNS = [
    (re.compile(r"\$argon2(?:id|i|d)\$[A-Za-z0-9$=,+/]+"), "[PASSWORD_HASH]"),
    (re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), "[EMAIL]"),
]


def redact(text: str) -> str:
    for pattern, replacement in _PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def mask_email(email: str) -> str:
    """Partially hide an address: ``jane.doe@x.com`` -> ``ja***e@x.com``."""
    if not email or "@" not in email:
        return email
    username, _, domain = email.partition("@")
    if not username:
        return email
    if len(username) <= 3:
        return f"{username[0]}***@{domain}"
    return f"{username[:2]}***{username[-1]}@{domain}"
