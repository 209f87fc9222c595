from __future__ import annotations

import re
from typing import Iterable, List


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Indian mobile numbers: optional +91/91 prefix, 10 ASCII digits starting 6-9
PHONE_RE = re.compile(r"^(\+91|91)?[6-9][0-9]{9}$")
URL_RE = re.compile(r"^https?://.+")


def is_valid_email(value: str | None) -> bool:
    if not value:
        return False
    return EMAIL_RE.match(value.strip()) is not None


def is_valid_phone(value: str | None) -> bool:
    if not value:
        return False
    return PHONE_RE.match(value.strip()) is not None


def is_valid_url(value: str | None) -> bool:
    return bool(value) and URL_RE.match(value) is not None


def clean_strings(values: Iterable[str], lower: bool = False) -> List[str]:
    """Trim, drop blanks and repeats; keeps first-seen order."""
    seen: set[str] = set()
    out: List[str] = []
    for raw in values or []:
        item = (raw or "").strip()
        if lower:
            item = item.lower()
        if not item or item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out
