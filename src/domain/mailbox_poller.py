"""
Mailbox polling - one sweep of recent unread mail.

Each cycle:
1. Search the mailbox for threads newer than the lookback window (capped)
2. For every unread message: load it, get a bearer token, forward it
3. Mark the message read whether or not the forward succeeded

Policy: failed forwards are logged and dropped (no retry, no redelivery).
An authorization failure stops the rest of the cycle.
"""

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from .models import ForwardResult, PollSummary
from services.gmail import build_search_query
from integrations.google_oauth import AuthorizationError
from integrations import task_endpoint

logger = logging.getLogger(__name__)

LOOKBACK_MINUTES = int(os.environ.get('LOOKBACK_MINUTES', '6'))
MAX_THREADS = int(os.environ.get('MAX_THREADS', '10'))


class MailboxPoller:
    """
    Forwards unread mail to the task request endpoint.

    Attributes:
        mailbox: Object with search_threads, list_unread_message_ids,
            get_message and mark_read (see services.gmail.GmailMailbox)
        credential_provider: Object with get_access_token()
        forward: Callable(text, access_token) -> response body
        lookback_minutes: Size of the search window
        max_threads: Maximum threads considered per cycle
    """

    def __init__(
        self,
        mailbox: Any,
        credential_provider: Any,
        forward: Callable[[str, str], str] = task_endpoint.forward_email,
        lookback_minutes: int = LOOKBACK_MINUTES,
        max_threads: int = MAX_THREADS
    ):
        self.mailbox = mailbox
        self.credential_provider = credential_provider
        self.forward = forward
        self.lookback_minutes = lookback_minutes
        self.max_threads = max_threads

    def poll(self, now: Optional[datetime] = None) -> PollSummary:
        """
        Run one poll cycle.

        Args:
            now: Current time (defaults to UTC now)

        Returns:
            PollSummary with per-cycle counters

        Raises:
            Errors from the mailbox search itself; per-message errors are
            caught and an authorization failure is reported in the summary
        """
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(minutes=self.lookback_minutes)
        query = build_search_query(since)

        summary = PollSummary()
        thread_ids = self.mailbox.search_threads(query, self.max_threads)
        summary.threads_scanned = len(thread_ids)

        try:
            for thread_id in thread_ids:
                try:
                    message_ids = self.mailbox.list_unread_message_ids(thread_id)
                except Exception as e:
                    logger.error(f"Failed to load thread {thread_id}, skipping: {e}")
                    continue

                for message_id in message_ids:
                    result = self._forward_message(message_id)
                    summary.results.append(result)
                    if result.success:
                        summary.forwarded += 1
                    else:
                        summary.failed += 1

                    if result.should_mark_read and self._mark_read(message_id):
                        summary.marked_read += 1
        except AuthorizationError as e:
            logger.error(f"Authorization failed, aborting poll cycle: {e}")
            summary.aborted = True
            summary.error_message = str(e)

        return summary

    def _forward_message(self, message_id: str) -> ForwardResult:
        """
        Load and forward one message.

        Returns:
            ForwardResult (success or failure)

        Raises:
            AuthorizationError: If no bearer token can be obtained
        """
        try:
            email = self.mailbox.get_message(message_id)
        except Exception as e:
            logger.error(f"Failed to load message {message_id}: {e}")
            return ForwardResult(success=False, message_id=message_id, error_message=str(e))

        access_token = self.credential_provider.get_access_token()

        logger.info(f"Forwarding message {message_id}: {json.dumps(email.to_payload())}")
        try:
            response_body = self.forward(email.to_text(), access_token)
        except Exception as e:
            logger.error(f"Error calling task endpoint for {message_id}: {e}")
            return ForwardResult(success=False, message_id=message_id, error_message=str(e))

        logger.info(f"Task endpoint response for {message_id}: {response_body}")
        return ForwardResult(success=True, message_id=message_id, response_body=response_body)

    def _mark_read(self, message_id: str) -> bool:
        """Mark a message read; failures are logged and reported as False."""
        try:
            self.mailbox.mark_read(message_id)
            return True
        except Exception as e:
            logger.error(f"Failed to mark message {message_id} as read: {e}")
            return False
