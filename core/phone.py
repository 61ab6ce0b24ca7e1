"""
core/phone.py -- Phone number validation and E.164 normalization.

Parsing and validation are delegated to the phonenumbers library (a port of
Google's libphonenumber). The only local rule is the region handling: a
number that starts with "+" is fully specified and any region hint is
ignored; otherwise the hint supplies the default country context.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

from typing import Optional

import phonenumbers

from core.errors import InvalidPhoneNumber


def parse_phone(raw: str, region: Optional[str] = None) -> phonenumbers.PhoneNumber:
    """Parse and validate raw, returning the phonenumbers object.

    Raises InvalidPhoneNumber when the input cannot be parsed or is not a
    valid number for its country.
    """
    raw = (raw or "").strip()
    if not raw:
        raise InvalidPhoneNumber()

    if raw.startswith("+"):
        region = None
    elif region:
        region = region.strip().upper()

    try:
        number = phonenumbers.parse(raw, region)
    except phonenumbers.NumberParseException as exc:
        raise InvalidPhoneNumber(detail=str(exc)) from exc

    if not phonenumbers.is_valid_number(number):
        raise InvalidPhoneNumber()
    return number


def normalize_phone(raw: str, region: Optional[str] = None) -> str:
    """Return raw reformatted as E.164 ("+" country code national number).

    Examples:
        normalize_phone("+1 (202) 555-0143")    -> "+12025550143"
        normalize_phone("0791 234 5678", "GB")  -> "+447912345678"
    """
    number = parse_phone(raw, region)
    return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)


def try_normalize_phone(raw: str, region: Optional[str] = None) -> Optional[str]:
    """Like normalize_phone() but returns None instead of raising."""
    try:
        return normalize_phone(raw, region)
    except InvalidPhoneNumber:
        return None
