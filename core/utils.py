# core/utils.py

import re
from datetime import datetime, timezone, date
from enum import Enum
from typing import Optional


DEFAULT_COUNTRY_CODE = "1"

# PostgREST can emit fewer than 6 fractional digits; older fromisoformat needs exactly 3 or 6
_FRACTION = re.compile(r"\.(\d+)")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse a PostgREST timestamp ("2025-01-01T10:00:00.123456+00:00",
    trailing "Z", or naive) into an aware UTC datetime.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def normalize_phone(phone: Optional[str], country_code: str = DEFAULT_COUNTRY_CODE) -> Optional[str]:
    """
    E.164 form of a phone number. Numbers already carrying "+" keep it,
    10-digit national numbers get `country_code`, and 11 digits that
    start with `country_code` get the "+". Anything else is returned
    trimmed, so the SMS provider rejects it instead of us guessing.
    Returns None for empty input.
    """
    if phone is None:
        return None
    raw = phone.strip()
    cleaned = re.sub(r"[^\d+]", "", raw)
    if not cleaned or cleaned == "+":
        return None
    if cleaned.startswith("+"):
        return cleaned
    if len(cleaned) == 10:
        return f"+{country_code}{cleaned}"
    if len(cleaned) == 10 + len(country_code) and cleaned.startswith(country_code):
        return f"+{cleaned}"
    return raw


def sanitize(data: dict) -> dict:
    """
    Sanitize a row before sending it to PostgREST:
    - Empty strings → None
    - Strip string whitespace
    - datetimes / dates → ISO strings
    - Enums → their value
    Digit strings stay strings (routing numbers, codes keep leading zeros).
    """
    clean = {}

    for k, v in data.items():
        if v is None or isinstance(v, bool):
            clean[k] = v
            continue

        if isinstance(v, Enum):
            clean[k] = v.value
            continue

        if isinstance(v, (datetime, date)):
            clean[k] = v.isoformat()
            continue

        if isinstance(v, str):
            stripped = v.strip()
            clean[k] = stripped if stripped != "" else None
            continue

        clean[k] = v

    return clean
