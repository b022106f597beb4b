"""
Helper utilities for the Support Bot service

This module contains utility functions used throughout the application.
"""

import re
import uuid
import time
import logging
from functools import wraps
from typing import Any, Optional

import phonenumbers
from phonenumbers import NumberParseException

# Configure logging
logger = logging.getLogger(__name__)

EMAIL_REGEX = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'

TRUE_VALUES = {'true', '1', 'yes', 'on'}
FALSE_VALUES = {'false', '0', 'no', 'off'}


class ValidationError(Exception):
    """Raised when request or configuration data fails validation"""
    pass


# Phone number handling
def format_phone_number(phone_number: str, format_type: str = 'E164',
                        default_region: Optional[str] = None) -> Optional[str]:
    """
    Format phone number to specified format.

    Args:
        phone_number: The phone number to format
        format_type: Format type ('E164', 'NATIONAL', 'INTERNATIONAL')
        default_region: Region used for numbers written without a country code

    Returns:
        str: Formatted phone number or None if invalid
    """
    try:
        parsed_number = phonenumbers.parse(phone_number, default_region)
        if not phonenumbers.is_valid_number(parsed_number):
            return None

        format_map = {
            'E164': phonenumbers.PhoneNumberFormat.E164,
            'NATIONAL': phonenumbers.PhoneNumberFormat.NATIONAL,
            'INTERNATIONAL': phonenumbers.PhoneNumberFormat.INTERNATIONAL
        }

        format_enum = format_map.get(format_type, phonenumbers.PhoneNumberFormat.E164)
        return phonenumbers.format_number(parsed_number, format_enum)
    except NumberParseException:
        return None


# Email validation
def validate_email(email: str) -> bool:
    """
    Validate email address format.

    Args:
        email: The email address to validate

    Returns:
        bool: True if valid, False otherwise
    """
    if not isinstance(email, str):
        return False
    return bool(re.match(EMAIL_REGEX, email.strip()))


# Text processing
def sanitize_text(text: str, max_length: int = 200) -> str:
    """
    Clean a short display value such as a customer name.

    Strips markup characters, collapses whitespace and truncates.
    """
    if not text:
        return ""

    sanitized = re.sub(r'[<>"]', '', str(text))
    sanitized = re.sub(r'\s+', ' ', sanitized).strip()

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized


def parse_bool(value: Any, default: bool = False) -> bool:
    """Interpret environment style boolean strings"""
    if value is None:
        return default
    if isinstance(value, bool):
        return value

    lowered = str(value).strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValidationError(f"Not a boolean value: {value!r}")


# ID generation
def generate_unique_id(prefix: str = "") -> str:
    """
    Generate a unique identifier.

    Args:
        prefix: Optional prefix for the ID

    Returns:
        str: Unique identifier
    """
    unique_id = str(uuid.uuid4()).replace('-', '')[:16]
    return f"{prefix}{unique_id}" if prefix else unique_id


# Logging utilities
def log_api_call(endpoint: str, method: str, status_code: int, duration: float):
    """
    Log API call details.

    Args:
        endpoint: API endpoint
        method: HTTP method
        status_code: Response status code
        duration: Request duration in seconds
    """
    logger.info(
        f"API Call: {method} {endpoint} - {status_code} - {duration:.3f}s"
    )


# Decorator utilities
def timing_decorator(func):
    """Decorator to measure function execution time"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        result = func(*args, **kwargs)
        end_time = time.time()
        logger.debug(f"{func.__name__} took {end_time - start_time:.3f} seconds")
        return result
    return wrapper


__all__ = [
    'ValidationError', 'format_phone_number', 'validate_email',
    'sanitize_text', 'parse_bool', 'generate_unique_id',
    'log_api_call', 'timing_decorator'
]
