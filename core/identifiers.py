"""
core/identifiers.py -- Login identifier classification.

A login form takes a single "login" field that may hold an email address, a
phone number or a username. resolve_login() decides which column to match
against and normalizes the value so it compares equal to what registration
stored:

  1. Email syntax (per email-validator)   -> ("email", lower-cased)
  2. Parses and validates as a phone      -> ("phone_number", E.164)
  3. Anything else                        -> ("username", unchanged)

This is a heuristic, not a grammar. A username that happens to be a valid
international phone number (e.g. "+16502530000") is looked up as a phone.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

from dataclasses import dataclass

from email_validator import EmailNotValidError, validate_email

from core.phone import try_normalize_phone

EMAIL = "email"
PHONE = "phone_number"
USERNAME = "username"


@dataclass(frozen=True)
class LoginIdentifier:
    """The (field, value) pair used for a single equality lookup."""

    field: str
    value: str


def is_email(value: str) -> bool:
    """Return True if value is a syntactically valid email address.

    Deliverability (DNS) is not checked -- classification must not depend on
    the network.
    """
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def resolve_login(raw: str) -> LoginIdentifier:
    login = (raw or "").strip()
    if is_email(login):
        return LoginIdentifier(EMAIL, login.lower())

    phone = try_normalize_phone(login)
    if phone is not None:
        return LoginIdentifier(PHONE, phone)

    return LoginIdentifier(USERNAME, raw)
