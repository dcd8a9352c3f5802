"""
Task field extraction from posted-task notification emails.

The notifications follow a fixed template:

    New task posted: **2023-05-15T14:30:00**
    **Type: Title: Fix leaky faucet, Description: Sink leaks, Address: ..., Due: ..., Budget: $150**

Each field is matched independently; a field that does not match is left out.
Extraction never raises.
"""

import logging
import re
from typing import Dict, Any, Optional

from .models import TaskDetails, build_envelope

logger = logging.getLogger(__name__)

TASK_MARKER = "New task posted:"

TIMESTAMP_PATTERN = re.compile(r'New task posted: \*\*([^*]+)\*\*')
TYPE_LINE_PATTERN = re.compile(r'\*\*Type: ([^*]+)\*\*')

TITLE_PATTERN = re.compile(r'Title: ([^,]+)')
DESCRIPTION_PATTERN = re.compile(r'Description: ([^,]+)')
# street, city, state/zip
ADDRESS_PATTERN = re.compile(r'Address: ([^,]+,[^,]+,[^,]+)')
DUE_PATTERN = re.compile(r'Due: ([^,]+)')
BUDGET_PATTERN = re.compile(r'Budget: \$(\d+)')


def is_task_email(body: Any) -> bool:
    """Check if a request body is raw task email text."""
    return isinstance(body, str) and TASK_MARKER in body


def extract_timestamp(email_text: str) -> Optional[str]:
    """Return the posting timestamp, or None if the marker is missing."""
    match = TIMESTAMP_PATTERN.search(email_text)
    return match.group(1) if match else None


def extract_type_line(email_text: str) -> Optional[str]:
    """
    Locate the line carrying the task fields.

    Prefers the emphasized form (**Type: ...**); falls back to the first
    line containing 'Type:'.

    Args:
        email_text: Raw email text

    Returns:
        The type line, or None if there is none
    """
    match = TYPE_LINE_PATTERN.search(email_text)
    if match:
        return f"Type: {match.group(1)}"

    for line in email_text.split('\n'):
        if 'Type:' in line:
            return line

    return None


def extract_task_details(type_line: Optional[str]) -> TaskDetails:
    """
    Extract individual task fields from the type line.

    Args:
        type_line: Line returned by extract_type_line (may be None)

    Returns:
        TaskDetails with only the matched fields set
    """
    details = TaskDetails()
    if not type_line:
        return details

    title_match = TITLE_PATTERN.search(type_line)
    if title_match:
        details.title = title_match.group(1).strip()

    desc_match = DESCRIPTION_PATTERN.search(type_line)
    if desc_match:
        details.description = desc_match.group(1).strip()

    address_match = ADDRESS_PATTERN.search(type_line)
    if address_match:
        details.address = address_match.group(1).strip()

    due_match = DUE_PATTERN.search(type_line)
    if due_match:
        details.due_date = due_match.group(1).strip()

    budget_match = BUDGET_PATTERN.search(type_line)
    if budget_match:
        details.budget = int(budget_match.group(1))

    return details


def parse_email_data(email_text: str) -> Dict[str, Any]:
    """
    Parse task notification text into a customer request envelope.

    Args:
        email_text: Raw email text containing the task template

    Returns:
        Envelope dict (customerRequest + customerContext)

    Example:
        >>> envelope = parse_email_data(
        ...     "New task posted: **2023-05-15T14:30:00**\\n"
        ...     "**Type: Title: Fix leaky faucet, Budget: $150**"
        ... )
        >>> envelope['customerRequest']['productId']
        'Fix leaky faucet'
    """
    timestamp = extract_timestamp(email_text)
    type_line = extract_type_line(email_text)
    details = extract_task_details(type_line)

    logger.info(
        f"Extracted task: timestamp={timestamp}, "
        f"fields={sorted(details.to_dict().keys())}"
    )

    return build_envelope(details, timestamp, type_line)
