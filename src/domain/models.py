"""
Data models for the task intake domain.

These type-safe data structures define clear contracts between components.
The envelope and stored record travel as plain dicts because they are
serialized to JSON (HTTP) and DynamoDB items as-is.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any

REQUEST_TYPE = "task_creation"
DEFAULT_PRODUCT_ID = "No Title"
DEFAULT_URGENCY = "medium"
DEFAULT_LANGUAGE = "en-US"
DEFAULT_LOYALTY_TIER = "standard"
RECORD_TYPE = "EMAIL_PROCESSED"


@dataclass
class RawEmail:
    """
    Unread message found by the mailbox search.

    Attributes:
        message_id: Mailbox message identifier (used to mark it read)
        subject: Subject line
        sender: From header
        plain_body: Plain text body (empty string if not present)
        received_at: Date header or provider timestamp
    """
    message_id: str
    subject: str
    sender: str
    plain_body: str
    received_at: str

    def to_payload(self) -> Dict[str, str]:
        """Convert to the {subject, sender, plainBody, receivedAt} payload."""
        return {
            'subject': self.subject,
            'sender': self.sender,
            'plainBody': self.plain_body,
            'receivedAt': self.received_at,
        }

    def to_text(self) -> str:
        """
        Render as plain text for the outbound call.

        Headers first, then a blank line, then the body untouched so that
        task markers inside it survive the trip.
        """
        return (
            f"Subject: {self.subject}\n"
            f"From: {self.sender}\n"
            f"Date: {self.received_at}\n"
            f"\n"
            f"{self.plain_body}"
        )


@dataclass
class TaskDetails:
    """
    Task fields extracted from the type line. Every field is optional.

    Attributes:
        title: Task title
        description: Task description
        address: Street, city, state/zip
        due_date: Due date as written in the email
        budget: Budget in whole dollars
    """
    title: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    due_date: Optional[str] = None
    budget: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, omitting fields that were not found."""
        result = {}
        if self.title is not None:
            result['title'] = self.title
        if self.description is not None:
            result['description'] = self.description
        if self.address is not None:
            result['address'] = self.address
        if self.due_date is not None:
            result['dueDate'] = self.due_date
        if self.budget is not None:
            result['budget'] = self.budget
        return result


def generate_customer_id() -> str:
    """Time-based customer id: 'task-' + current time in milliseconds."""
    return f"task-{int(time.time() * 1000)}"


def build_envelope(
    details: TaskDetails,
    timestamp: Optional[str],
    type_line: Optional[str]
) -> Dict[str, Any]:
    """
    Build a customer request envelope around extracted task details.

    Args:
        details: Extracted task fields
        timestamp: Task posting timestamp (None if not found)
        type_line: The line the fields were read from (None if not found)

    Returns:
        Dict with customerRequest and customerContext sections
    """
    return {
        'customerRequest': {
            'customerId': generate_customer_id(),
            'requestType': REQUEST_TYPE,
            'productId': details.title or DEFAULT_PRODUCT_ID,
            'urgency': DEFAULT_URGENCY,
            'preferredLanguage': DEFAULT_LANGUAGE,
        },
        'customerContext': {
            'loyaltyTier': DEFAULT_LOYALTY_TIER,
            'previousInteractions': 0,
            'taskData': {
                'timestamp': timestamp,
                'typeLine': type_line,
                'details': details.to_dict(),
            },
        },
    }


def build_stored_record(envelope: Dict[str, Any], timestamp: str) -> Dict[str, Any]:
    """Wrap an accepted envelope in the record persisted to the store."""
    return {
        'type': RECORD_TYPE,
        'inputData': envelope,
        'timestamp': timestamp,
        'processed': True,
    }


@dataclass
class ForwardResult:
    """
    Outcome of forwarding one message.

    Attributes:
        success: Whether the outbound call succeeded
        message_id: Mailbox message identifier
        response_body: Endpoint response text (if the call succeeded)
        error_message: Error description (if the call failed)
    """
    success: bool
    message_id: str
    response_body: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def should_mark_read(self) -> bool:
        """Always True - failed forwards are dropped, never redelivered."""
        return True

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        if self.success:
            return f"ForwardResult(success=True, message_id={self.message_id})"
        else:
            return f"ForwardResult(success=False, message_id={self.message_id}, error={self.error_message})"


@dataclass
class PollSummary:
    """
    Counters for one poll cycle.

    Attributes:
        threads_scanned: Threads returned by the search
        forwarded: Messages forwarded successfully
        failed: Messages whose forward failed
        marked_read: Messages marked read
        aborted: True if an authorization failure stopped the cycle
        error_message: Why the cycle was aborted
        results: Per-message forward outcomes
    """
    threads_scanned: int = 0
    forwarded: int = 0
    failed: int = 0
    marked_read: int = 0
    aborted: bool = False
    error_message: Optional[str] = None
    results: List[ForwardResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert counters to a dict for the Lambda response."""
        return {
            'threadsScanned': self.threads_scanned,
            'forwarded': self.forwarded,
            'failed': self.failed,
            'markedRead': self.marked_read,
            'aborted': self.aborted,
            'error': self.error_message,
        }


@dataclass
class RequestResult:
    """
    Outcome of one inbound task request, ready to become an HTTP response.

    Attributes:
        status_code: HTTP status (200, 400 or 500)
        body: JSON-serializable dict, or plain text for validation failures
        request_id: Stored document id (only on success)
    """
    status_code: int
    body: Any
    request_id: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status_code == 200

    @property
    def is_text(self) -> bool:
        """Validation failures answer with plain text, everything else JSON."""
        return isinstance(self.body, str)
