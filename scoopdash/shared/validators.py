"""Shared validation utilities"""

import re
from typing import Optional


def normalize_zip_code(zip_code: Optional[str]) -> Optional[str]:
    """
    Normalize a ZIP or ZIP+4 to its 5-digit form.

    Returns:
        5-digit ZIP, or None if the input is not 5 or 9 digits
    """
    if not zip_code:
        return None

    digits = re.sub(r"\D", "", zip_code)
    if len(digits) == 5:
        return digits
    if len(digits) == 9:
        return digits[:5]
    return None


def validate_us_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize US phone number to E.164 format.

    Args:
        phone: Phone number string in various formats

    Returns:
        Normalized phone number in E.164 format (+1XXXXXXXXXX)

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    # Remove all non-digit characters
    digits = re.sub(r"\D", "", phone)

    if digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]

    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits for US numbers")

    return f"+1{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_cash_app_tag(tag: Optional[str]) -> Optional[str]:
    """Normalize a Cash App $cashtag (leading $, 1-20 letters/digits/underscore)"""
    if not tag:
        return tag

    tag = tag.strip()
    if not tag.startswith("$"):
        tag = f"${tag}"
    if not re.match(r"^\$[A-Za-z][A-Za-z0-9_]{0,19}$", tag):
        raise ValueError("Invalid Cash App $cashtag")
    return tag
