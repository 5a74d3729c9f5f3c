"""
Input validation for participant registration.

All validators are predicates: structural problems yield False (or an
error entry) rather than an exception.
"""

import math
import re
from typing import Any, Dict, Mapping

from .departments import careers_for

NATIONAL_ID_LENGTH = 10
MIN_REGION_CODE = 1
MAX_REGION_CODE = 24

_DIGITS_RE = re.compile(r"[0-9]+")
_NAME_RE = re.compile(r"[a-zA-Z\sñÑáéíóúÁÉÍÓÚüÜ']+")
_STUDENT_ID_RE = re.compile(r"[0-9]{7}")
_EMAIL_LOCAL_PART = r"[a-zA-Z0-9._%+-]+"


def validate_national_id(value: Any) -> bool:
    """
    Check a 10-digit national identity number with the Modulo-10 scheme.

    The first two digits are the region code (1-24). The first nine digits
    are the payload: digits at even positions are doubled (minus 9 when the
    result exceeds 9), odd positions are taken as is. The tenth digit must
    equal the distance from the payload sum to the next multiple of ten.

    @param value: Candidate identity number
    @return: True if structurally valid, False otherwise
    """
    if not isinstance(value, str) or len(value) != NATIONAL_ID_LENGTH:
        return False
    if not _DIGITS_RE.fullmatch(value):
        return False

    region = int(value[:2])
    if region < MIN_REGION_CODE or region > MAX_REGION_CODE:
        return False

    digits = [int(ch) for ch in value]
    check_digit = digits.pop()

    total = 0
    for i, digit in enumerate(digits):
        if i % 2 == 0:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit

    computed = math.ceil(total / 10) * 10 - total
    if computed == 10:
        computed = 0

    return computed == check_digit


def validate_institutional_email(email: Any, domain: str) -> bool:
    """Email must belong to the institutional domain (case-insensitive)."""
    if not isinstance(email, str) or not domain:
        return False
    pattern = rf"{_EMAIL_LOCAL_PART}@{re.escape(domain)}"
    return re.fullmatch(pattern, email.strip(), re.IGNORECASE) is not None


def validate_name(name: Any) -> bool:
    if not isinstance(name, str):
        return False
    return _NAME_RE.fullmatch(name.strip()) is not None


def validate_student_id_digits(digits: Any) -> bool:
    if not isinstance(digits, str):
        return False
    return _STUDENT_ID_RE.fullmatch(digits) is not None


def validate_registration(
    data: Mapping[str, Any],
    config: Any,
) -> Dict[str, str]:
    """
    Validate a sign-up form.

    @param data: Submitted fields
    @param config: PortalConfig providing the registration rules
    @return: Mapping of field name to error message, empty when valid
    """
    errors: Dict[str, str] = {}
    domain = config.get("registration", "email_domain")
    min_password = config.get("registration", "min_password_length")

    if not validate_name(data.get("full_name")):
        errors["full_name"] = "Enter a valid name (letters and spaces only)."
    if not validate_institutional_email(data.get("email"), domain):
        errors["email"] = f"Must be a valid @{domain} address."
    if not validate_national_id(data.get("national_id")):
        errors["national_id"] = "Enter a valid 10-digit national ID number."
    if not validate_student_id_digits(data.get("student_id_digits")):
        errors["student_id_digits"] = "Enter the 7 digits of your student ID."

    department = data.get("department")
    if not isinstance(department, str) or not careers_for(department):
        errors["department"] = "Select a department."
    elif data.get("career") not in careers_for(department):
        errors["career"] = "Select a career offered by the department."

    password = data.get("password")
    if not isinstance(password, str) or len(password) < min_password:
        errors["password"] = (
            f"Password must be at least {min_password} characters long."
        )

    if data.get("accepted_privacy") is not True:
        errors["accepted_privacy"] = "You must accept the data privacy notice to register."

    return errors
