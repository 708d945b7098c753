"""
Contact normalisation for salon clients.

Phone numbers are the key clients are matched on: the public booking page
finds-or-registers a client by phone, and the kiosk looks up today's
appointments by whatever the client types on the keypad. Both only match if
every phone is stored the same way, so all inputs go through ``validate_us_phone``
and are kept as E.164 (``+14085551234``).
"""

import re
from typing import Optional

_NON_DIGITS = re.compile(r"\D")
# NANP: area code and exchange never start with 0 or 1
_NANP_NUMBER = re.compile(r"^[2-9]\d{2}[2-9]\d{6}$")
_EMAIL = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def validate_us_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalise a client's US phone to E.164.

    Accepts what clients actually type: ``(408) 555-1234``, ``408.555.1234``,
    ``1-408-555-1234``, ``+14085551234``. Empty input passes through so optional
    fields stay optional.

    Raises:
        ValueError: not a 10-digit US number (Pydantic turns this into a 422)
    """
    if not phone:
        return phone

    digits = _NON_DIGITS.sub("", phone)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]

    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits for US numbers")
    if not _NANP_NUMBER.match(digits):
        raise ValueError("Phone number is not a valid US number")

    return f"+1{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """Lowercased email for online booking contact details; ValueError when malformed"""
    if not email:
        return email

    email = email.strip().lower()
    if not _EMAIL.match(email):
        raise ValueError("Invalid email format")
    return email
