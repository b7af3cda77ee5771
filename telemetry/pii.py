from __future__ import annotations

import hashlib
import re
from typing import Any, Dict

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
# Phone-like numbers: optional country code and separators, at least 9 digits overall.
# ISO dates (2024-05-01...) are not phone numbers.
PHONE_RE = re.compile(r"(?<![\w-])(?!\d{4}-\d{2}-\d{2})\+?\d[\d\s().-]{8,}\d")
# National-ID-like shapes (3-2-4).
GOV_ID_RE = re.compile(r"\b\d{3}-\d{2}-\d{4}\b")

MAX_LOGGED_STRING = 500

# Keys whose values never reach a log line.
SENSITIVE_FIELDS = {
    "password",
    "password_hash",
    "access_token",
    "refresh_token",
    "authorization",
    "symptoms",
    "notes",
    "selected_campus",
}


def _hash_token(text: str) -> str:
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]
    return f"[HASH:{digest}]"


def scrub_text(text: str) -> str:
    """Replace emails, phone numbers and ID-like tokens with short hashes."""
    if not text:
        return text

    def _replace(match: re.Match, label: str) -> str:
        return f"[{label}_{_hash_token(match.group(0))}]"

    scrubbed = EMAIL_RE.sub(lambda m: _replace(m, "EMAIL"), text)
    scrubbed = PHONE_RE.sub(lambda m: _replace(m, "PHONE"), scrubbed)
    scrubbed = GOV_ID_RE.sub(lambda m: _replace(m, "ID"), scrubbed)
    return scrubbed


def _is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    if lowered in SENSITIVE_FIELDS:
        return True
    return "password" in lowered or "token" in lowered or "secret" in lowered


def _redacted(value: Any) -> Dict[str, Any]:
    if isinstance(value, (list, tuple, dict)):
        return {"redacted": True, "items": len(value)}
    return {"redacted": True}


def scrub_value(value: Any) -> Any:
    if isinstance(value, str):
        cleaned = scrub_text(value)
        if len(cleaned) > MAX_LOGGED_STRING:
            return _hash_token(cleaned)
        return cleaned
    if isinstance(value, dict):
        return sanitize_log_payload(value)
    if isinstance(value, (list, tuple)):
        return [scrub_value(item) for item in value]
    return value


def sanitize_log_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Redact sensitive keys and scrub PII from every other value."""
    if not isinstance(payload, dict):
        return {}
    cleaned: Dict[str, Any] = {}
    for key, value in payload.items():
        if value is None:
            cleaned[key] = value
        elif _is_sensitive_key(str(key)):
            cleaned[key] = _redacted(value)
        else:
            cleaned[key] = scrub_value(value)
    return cleaned
