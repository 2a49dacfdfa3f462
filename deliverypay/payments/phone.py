"""Kenyan phone number normalization for M-Pesa STK push."""

from __future__ import annotations

import re

COUNTRY_CODE = "254"
TRUNK_PREFIX = "0"
SUBSCRIBER_DIGITS = 9
NORMALIZED_LENGTH = len(COUNTRY_CODE) + SUBSCRIBER_DIGITS

_NON_DIGIT = re.compile(r"\D")


def normalize_phone(raw: str) -> str:
    """Canonicalize `raw` to 254XXXXXXXXX where its shape is recognized.

    Accepts 254XXXXXXXXX, 0XXXXXXXXX and bare XXXXXXXXX, ignoring spaces,
    dashes and a leading '+'. Anything else comes back as its digits only and
    fails `is_valid_phone`.
    """
    digits = _NON_DIGIT.sub("", raw or "")

    if digits.startswith(COUNTRY_CODE):
        return digits
    if digits.startswith(TRUNK_PREFIX):
        return COUNTRY_CODE + digits[1:]
    if len(digits) == SUBSCRIBER_DIGITS:
        return COUNTRY_CODE + digits
    return digits


def is_valid_phone(raw: str) -> bool:
    normalized = normalize_phone(raw)
    return len(normalized) == NORMALIZED_LENGTH and normalized.startswith(COUNTRY_CODE)
