"""
Gmail mailbox utilities for the poller.

This module searches the mailbox, loads unread messages as RawEmail objects
and marks them read. Messages are fetched in 'raw' format and parsed with the
standard email package so the plain text body is decoded the same way for
every sender.
"""

import base64
import logging
import os
from datetime import datetime, timezone
from email import policy
from email.parser import BytesParser
from typing import Any, Dict, List

from googleapiclient.discovery import build

from domain.models import RawEmail

logger = logging.getLogger(__name__)

GMAIL_USER_ID = os.environ.get('GMAIL_USER_ID', 'me')
UNREAD_LABEL = 'UNREAD'


def build_search_query(since: datetime) -> str:
    """
    Build a Gmail search query for messages at or after a point in time.

    Args:
        since: Lower time bound (timezone-aware)

    Returns:
        str: Query using epoch seconds, e.g. 'after:1684161000'
    """
    return f"after:{int(since.timestamp())}"


def extract_plain_body(raw_message: bytes) -> Dict[str, str]:
    """
    Parse a raw RFC 822 message and extract headers and plain text body.

    Args:
        raw_message: Raw message bytes

    Returns:
        Dict with subject, sender, date and text_body (empty strings if absent)
    """
    msg = BytesParser(policy=policy.default).parsebytes(raw_message)

    result = {
        'subject': str(msg.get('Subject', '')),
        'sender': str(msg.get('From', '')),
        'date': str(msg.get('Date', '')),
        'text_body': '',
    }

    if msg.is_multipart():
        for part in msg.walk():
            content_disposition = str(part.get("Content-Disposition", ""))
            if "attachment" in content_disposition:
                continue

            if part.get_content_type() == "text/plain":
                try:
                    # get_content() handles quoted-printable, base64, etc automatically
                    result['text_body'] = part.get_content()
                except (LookupError, ValueError) as e:
                    logger.warning(f"Failed to decode text body with get_content(): {e}")
                    payload = part.get_payload(decode=True)
                    if payload:
                        result['text_body'] = payload.decode('utf-8', errors='ignore')
                break
    elif msg.get_content_type() == "text/plain":
        result['text_body'] = msg.get_content()
    else:
        logger.warning(
            f"Unknown content type for non-multipart email: {msg.get_content_type()}. "
            f"Plain body will be empty."
        )

    return result


class GmailMailbox:
    """
    Thin wrapper around the Gmail API for the operations the poller needs.

    Attributes:
        service: Gmail API service resource
        user_id: Mailbox owner ('me' for the authorized user)
    """

    def __init__(self, service: Any, user_id: str = GMAIL_USER_ID):
        self.service = service
        self.user_id = user_id

    @classmethod
    def from_credentials(cls, credentials: Any) -> 'GmailMailbox':
        """Build a mailbox from OAuth credentials."""
        service = build('gmail', 'v1', credentials=credentials, cache_discovery=False)
        logger.info("Gmail service initialized")
        return cls(service)

    def search_threads(self, query: str, max_threads: int) -> List[str]:
        """
        Search the mailbox and return matching thread ids.

        Args:
            query: Gmail search query
            max_threads: Maximum number of threads to return

        Returns:
            List of thread ids (newest first, as Gmail returns them)

        Raises:
            HttpError: If the search fails
        """
        response = self.service.users().threads().list(
            userId=self.user_id,
            q=query,
            maxResults=max_threads
        ).execute()

        thread_ids = [t['id'] for t in response.get('threads', [])]
        logger.info(f"Search '{query}' matched {len(thread_ids)} thread(s)")
        return thread_ids

    def list_unread_message_ids(self, thread_id: str) -> List[str]:
        """Return ids of messages in a thread that carry the UNREAD label."""
        thread = self.service.users().threads().get(
            userId=self.user_id,
            id=thread_id,
            format='minimal'
        ).execute()

        return [
            m['id'] for m in thread.get('messages', [])
            if UNREAD_LABEL in m.get('labelIds', [])
        ]

    def get_message(self, message_id: str) -> RawEmail:
        """
        Load one message as a RawEmail.

        Args:
            message_id: Gmail message id

        Returns:
            RawEmail with subject, sender, plain body and received date
        """
        message = self.service.users().messages().get(
            userId=self.user_id,
            id=message_id,
            format='raw'
        ).execute()

        raw_bytes = base64.urlsafe_b64decode(message['raw'].encode('ascii'))
        parsed = extract_plain_body(raw_bytes)

        received_at = parsed['date']
        if not received_at and message.get('internalDate'):
            received_at = datetime.fromtimestamp(
                int(message['internalDate']) / 1000, tz=timezone.utc
            ).isoformat()

        return RawEmail(
            message_id=message_id,
            subject=parsed['subject'],
            sender=parsed['sender'],
            plain_body=parsed['text_body'],
            received_at=received_at
        )

    def mark_read(self, message_id: str) -> None:
        """
        Remove the UNREAD label from a message.

        Raises:
            HttpError: If the modify call fails
        """
        self.service.users().messages().modify(
            userId=self.user_id,
            id=message_id,
            body={'removeLabelIds': [UNREAD_LABEL]}
        ).execute()
        logger.info(f"Marked message {message_id} as read")
