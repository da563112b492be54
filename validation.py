import re
from typing import Optional

from exceptions import IdentityValidationError

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_REGEX = re.compile(r"^[+]?[\d\s\-()]+$")
PHONE_MIN_LENGTH = 7


def is_valid_email(email: str) -> bool:
    return EMAIL_REGEX.match(email) is not None


def is_valid_phone_number(phone: str) -> bool:
    return PHONE_REGEX.match(phone) is not None and len(phone) >= PHONE_MIN_LENGTH


def validate_identify_request(email: Optional[str], phone: Optional[str], strict: bool = False) -> None:
    if not email and not phone:
        raise IdentityValidationError("Either email or phoneNumber must be provided")

    if not strict:
        return
    if email and not is_valid_email(email):
        raise IdentityValidationError("Invalid email format")
    if phone and not is_valid_phone_number(phone):
        raise IdentityValidationError("Invalid phone number format")
