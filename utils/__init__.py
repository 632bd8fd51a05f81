"""
utils/ - Shared Utilities Module

Contains:
- parsers.py: Input parsing functions
"""

from .parsers import (
    is_cancel,
    is_command_match,
    parse_number,
    parse_gift_details,
)
