"""Canonical phone numbers.

Every phone number is stored and looked up in the same ``+<country><subscriber>``
form so that "0712 345 678", "254712345678" and "+254 712 345 678" all bind to
the same patient.
"""

from __future__ import annotations

import re

from ..config import get_settings

_NON_DIALABLE = re.compile(r"[^0-9+]")


def normalize_phone(phone: str | None, country_code: str | None = None) -> str:
    if not phone:
        return ""
    code = country_code or get_settings().DEFAULT_COUNTRY_CODE
    clean = _NON_DIALABLE.sub("", str(phone))
    # A "+" is only meaningful as the first character
    has_plus = clean.startswith("+")
    digits = clean.replace("+", "")
    if not has_plus and digits.startswith("00"):
        # International dialing prefix
        has_plus = True
        digits = digits[2:]
    if not digits:
        return ""

    if has_plus:
        if digits.startswith(code + "0"):
            digits = code + digits[len(code) + 1 :]
        return "+" + digits

    if digits.startswith(code + "0"):
        return "+" + code + digits[len(code) + 1 :]
    if digits.startswith(code):
        return "+" + digits
    if digits.startswith("0") and len(digits) == 10:
        return "+" + code + digits[1:]
    if len(digits) == 9 and digits[0] in "17":
        return "+" + code + digits
    return "+" + digits


def digits_only(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")
