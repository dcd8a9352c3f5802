"""
Structural validation for customer request envelopes.

Only the two top-level sections are checked; nested content is accepted as-is.
"""

from typing import Any, Dict

REQUIRED_SECTIONS = ('customerRequest', 'customerContext')
INVALID_STRUCTURE_MESSAGE = "Invalid JSON structure"


class ValidationError(Exception):
    """Raised when a request envelope is missing a required section."""

    def __init__(self, message: str = INVALID_STRUCTURE_MESSAGE):
        super().__init__(message)
        self.message = message


def validate_envelope(candidate: Any) -> Dict[str, Any]:
    """
    Check that a candidate has both required sections.

    Args:
        candidate: Decoded request body (any type)

    Returns:
        The candidate itself, unchanged

    Raises:
        ValidationError: If either section is missing or null
    """
    if not isinstance(candidate, dict):
        raise ValidationError()

    for section in REQUIRED_SECTIONS:
        if candidate.get(section) is None:
            raise ValidationError()

    return candidate
