"""
Polish mobile numbers: strict normalizer for profile edits, loose predicate for delivery.
Stored form is "+48 DDD DDD DDD"; the gateway receives the compact "+48DDDDDDDDD".
"""

from __future__ import annotations

import re

COUNTRY_PREFIX = "48"
NATIONAL_NUMBER_LENGTH = 9

_WHITESPACE_RE = re.compile(r"\s+")
_DIGITS_RE = re.compile(r"^[0-9]{9}$")
_DELIVERABLE_RE = re.compile(r"^\+48[0-9]{9}$")


class PhoneValidationError(ValueError):
    """Base class for phone numbers that cannot be normalized."""


class InvalidPhoneLength(PhoneValidationError):
    def __init__(self, message: str = "Invalid phone number length"):
        super().__init__(message)


class InvalidPhoneDigits(PhoneValidationError):
    def __init__(self, message: str = "Phone number must contain only digits"):
        super().__init__(message)


def normalize_phone(raw: str) -> str:
    """
    Normalize a free-form Polish number to "+48 DDD DDD DDD".
    Accepts "+48 123 456 789", "+48123456789", "48123456789" and "123456789".
    Raises InvalidPhoneLength / InvalidPhoneDigits.
    """
    cleaned = _WHITESPACE_RE.sub("", raw or "").replace("+", "")
    if cleaned.startswith(COUNTRY_PREFIX):
        cleaned = cleaned[len(COUNTRY_PREFIX):]
    if len(cleaned) != NATIONAL_NUMBER_LENGTH:
        raise InvalidPhoneLength()
    if not _DIGITS_RE.match(cleaned):
        raise InvalidPhoneDigits()
    return f"+48 {cleaned[0:3]} {cleaned[3:6]} {cleaned[6:9]}"


def is_valid_phone(raw: str | None) -> bool:
    """Cheap pre-delivery check: "+48" followed by 9 digits once whitespace is removed."""
    if not raw:
        return False
    return bool(_DELIVERABLE_RE.match(_WHITESPACE_RE.sub("", raw)))


def compact_phone(raw: str) -> str:
    return _WHITESPACE_RE.sub("", raw)
