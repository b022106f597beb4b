"""
Utilities package for the Support Bot service

This package contains utility functions and the shared validation error.
"""

from .helpers import (
    ValidationError,
    format_phone_number,
    validate_email,
    sanitize_text,
    parse_bool,
    generate_unique_id,
    log_api_call,
    timing_decorator
)

__all__ = [
    'ValidationError',
    'format_phone_number',
    'validate_email',
    'sanitize_text',
    'parse_bool',
    'generate_unique_id',
    'log_api_call',
    'timing_decorator'
]

# Package metadata
__version__ = '1.0.0'
__description__ = 'Utility functions and helpers for the Support Bot'
