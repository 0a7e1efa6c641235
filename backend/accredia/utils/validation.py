"""
Input validation for accreditation forms.

RUT (Chilean national id) normalization and check digit, email and phone
format, password policy, and profile completeness checks.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

from flask import current_app, has_app_context

RUT_PATTERN = re.compile(r'^(\d{7,8})-([0-9K])$')
EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]{2,}$')
PHONE_STRIP_PATTERN = re.compile(r'[\s\-()]')
WHITESPACE_PATTERN = re.compile(r'\s+')

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128

REQUIRED_PROFILE_FIELDS = [
    {'key': 'nombre', 'label': 'Nombre'},
    {'key': 'apellido', 'label': 'Apellido'},
    {'key': 'medio', 'label': 'Medio / Empresa'},
]

ACCREDITATION_REQUIRED_FIELDS = [
    {'key': 'rut', 'label': 'RUT'},
    *REQUIRED_PROFILE_FIELDS,
]


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None


@dataclass
class RutValidation:
    valid: bool
    error: Optional[str] = None
    formatted: Optional[str] = None


def clean_rut(raw: str) -> str:
    """
    Normalize a RUT to "12345678-9" form.

    Removes dots and whitespace, inserts the dash before the check digit
    when missing, and uppercases the K.

    Example:
        >>> clean_rut(' 12.345.678-k ')
        '12345678-K'
        >>> clean_rut('123456789')
        '12345678-9'
    """
    cleaned = re.sub(r'[.\s]', '', raw or '')
    if '-' not in cleaned and len(cleaned) > 1:
        cleaned = f"{cleaned[:-1]}-{cleaned[-1]}"
    return cleaned.upper()


def format_rut(raw: str) -> str:
    """
    Format a RUT with thousands dots: "12.345.678-9".

    Returns the input unchanged when it cannot be split into body and check digit.
    """
    cleaned = clean_rut(raw)
    parts = cleaned.split('-')
    if len(parts) != 2 or not parts[0].isdigit():
        return raw
    body, dv = parts
    return f"{int(body):,}".replace(',', '.') + f"-{dv}"


def compute_dv(body: int) -> str:
    """
    Compute the RUT check digit with the modulo-11 algorithm.

    Digits are weighted right to left with the cycle 2..7.

    Example:
        >>> compute_dv(12345678)
        '5'
    """
    total = 0
    multiplier = 2
    for digit in reversed(str(body)):
        total += int(digit) * multiplier
        multiplier = 2 if multiplier == 7 else multiplier + 1

    remainder = 11 - (total % 11)
    if remainder == 11:
        return '0'
    if remainder == 10:
        return 'K'
    return str(remainder)


def _check_digit_enabled() -> bool:
    if has_app_context():
        return current_app.config.get('RUT_CHECK_DIGIT_ENABLED', True)
    return True


def validate_rut(raw: str, check_digit: Optional[bool] = None) -> RutValidation:
    """
    Validate a RUT and return its formatted form.

    Args:
        raw: User input, with or without dots/dash
        check_digit: Verify the modulo-11 digit (defaults to RUT_CHECK_DIGIT_ENABLED)

    Returns:
        RutValidation with valid flag, error message and formatted RUT
    """
    if not raw or not str(raw).strip():
        return RutValidation(valid=False, error='RUT es requerido')

    cleaned = clean_rut(str(raw))
    match = RUT_PATTERN.match(cleaned)
    if not match:
        return RutValidation(valid=False, error='Formato inválido. Ej: 12.345.678-9')

    if check_digit is None:
        check_digit = _check_digit_enabled()

    body, dv = match.group(1), match.group(2)
    if check_digit and compute_dv(int(body)) != dv:
        return RutValidation(valid=False, error='Dígito verificador incorrecto')

    return RutValidation(valid=True, formatted=format_rut(cleaned))


def validate_email(email: str) -> ValidationResult:
    if not email or not str(email).strip():
        return ValidationResult(valid=False, error='Email es requerido')
    if not EMAIL_PATTERN.match(str(email).strip()):
        return ValidationResult(valid=False, error='Email inválido. Ej: correo@ejemplo.cl')
    return ValidationResult(valid=True)


def validate_phone(phone: Optional[str]) -> ValidationResult:
    """Phone is optional; when present it needs at least 8 characters once separators are stripped."""
    if not phone:
        return ValidationResult(valid=True)
    cleaned = PHONE_STRIP_PATTERN.sub('', str(phone))
    if len(cleaned) < 8:
        return ValidationResult(valid=False, error='Teléfono debe tener al menos 8 dígitos')
    return ValidationResult(valid=True)


def sanitize(value: Optional[str]) -> str:
    """Trim and collapse internal whitespace."""
    if value is None:
        return ''
    return WHITESPACE_PATTERN.sub(' ', str(value).strip())


def validate_password(password: Optional[str]) -> ValidationResult:
    if not password:
        return ValidationResult(valid=False, error='La contraseña es requerida')
    if len(password) < PASSWORD_MIN_LENGTH:
        return ValidationResult(
            valid=False, error=f'La contraseña debe tener al menos {PASSWORD_MIN_LENGTH} caracteres'
        )
    if len(password) > PASSWORD_MAX_LENGTH:
        return ValidationResult(
            valid=False, error=f'La contraseña no puede exceder {PASSWORD_MAX_LENGTH} caracteres'
        )
    return ValidationResult(valid=True)


def _field_value(profile: Any, key: str):
    if profile is None:
        return None
    if isinstance(profile, dict):
        return profile.get(key)
    return getattr(profile, key, None)


def _missing(profile: Any, fields: List[Dict[str, str]]) -> List[Dict[str, str]]:
    missing = []
    for field in fields:
        value = _field_value(profile, field['key'])
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field)
    return missing


def get_missing_profile_fields(profile: Any) -> List[Dict[str, str]]:
    """Fields a team manager must fill before adding members."""
    return _missing(profile, REQUIRED_PROFILE_FIELDS)


def is_profile_complete(profile: Any) -> bool:
    return profile is not None and not get_missing_profile_fields(profile)


def get_missing_accreditation_fields(profile: Any) -> List[Dict[str, str]]:
    return _missing(profile, ACCREDITATION_REQUIRED_FIELDS)


def is_ready_to_accredit(profile: Any) -> bool:
    return profile is not None and not get_missing_accreditation_fields(profile)
