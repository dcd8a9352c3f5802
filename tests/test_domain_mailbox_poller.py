"""
Tests for the mailbox poll cycle.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock, patch
from botocore.exceptions import EndpointConnectionError
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.mailbox_poller import MailboxPoller
from domain.models import RawEmail
from integrations.google_oauth import AuthorizationError, GoogleCredentialProvider
from integrations.task_endpoint import TransportError

NOW = datetime(2023, 5, 15, 14, 30, 0, tzinfo=timezone.utc)


def _raw_email(message_id):
    return RawEmail(
        message_id=message_id,
        subject=f"Task {message_id}",
        sender="notifications@example.com",
        plain_body="New task posted: **2023-05-15T14:30:00**",
        received_at="Mon, 15 May 2023 14:30:05 +0000"
    )


@pytest.fixture
def mailbox():
    """Mock mailbox with one thread holding one unread message."""
    mailbox = MagicMock()
    mailbox.search_threads.return_value = ['t1']
    mailbox.list_unread_message_ids.return_value = ['m1']
    mailbox.get_message.side_effect = _raw_email
    return mailbox


@pytest.fixture
def credential_provider():
    provider = MagicMock()
    provider.get_access_token.return_value = 'access-token'
    return provider


class TestPoll:
    """Test one poll cycle."""

    def test_search_window_and_cap(self, mailbox, credential_provider):
        """Test the search uses now minus the lookback window and the thread cap."""
        poller = MailboxPoller(mailbox, credential_provider, forward=Mock(return_value='ok'))

        poller.poll(now=NOW)

        # 14:24:00 UTC
        mailbox.search_threads.assert_called_once_with('after:1684160640', 10)

    def test_custom_window_and_cap(self, mailbox, credential_provider):
        poller = MailboxPoller(
            mailbox, credential_provider,
            forward=Mock(return_value='ok'),
            lookback_minutes=30,
            max_threads=3
        )

        poller.poll(now=NOW)

        mailbox.search_threads.assert_called_once_with('after:1684159200', 3)

    def test_forwards_and_marks_read(self, mailbox, credential_provider):
        forward = Mock(return_value='{"success": true}')
        poller = MailboxPoller(mailbox, credential_provider, forward=forward)

        summary = poller.poll(now=NOW)

        forward.assert_called_once_with(_raw_email('m1').to_text(), 'access-token')
        mailbox.mark_read.assert_called_once_with('m1')
        assert summary.threads_scanned == 1
        assert summary.forwarded == 1
        assert summary.failed == 0
        assert summary.marked_read == 1
        assert summary.results[0].response_body == '{"success": true}'

    def test_failed_forward_still_marks_read(self, mailbox, credential_provider):
        """
        CRITICAL TEST: a message whose forward failed is still marked read.
        Failed forwards are dropped, never redelivered.
        """
        forward = Mock(side_effect=TransportError('503 Service Unavailable'))
        poller = MailboxPoller(mailbox, credential_provider, forward=forward)

        summary = poller.poll(now=NOW)

        forward.assert_called_once()
        mailbox.mark_read.assert_called_once_with('m1')
        assert summary.failed == 1
        assert summary.marked_read == 1
        assert summary.aborted is False

    def test_failure_does_not_stop_cycle(self, mailbox, credential_provider):
        """Test later messages are still processed after a failure."""
        mailbox.search_threads.return_value = ['t1', 't2']
        mailbox.list_unread_message_ids.side_effect = lambda thread_id: {
            't1': ['m1', 'm2'],
            't2': ['m3'],
        }[thread_id]
        forward = Mock(side_effect=[TransportError('timeout'), 'ok', 'ok'])
        poller = MailboxPoller(mailbox, credential_provider, forward=forward)

        summary = poller.poll(now=NOW)

        assert forward.call_count == 3
        assert [c[0][0] for c in mailbox.mark_read.call_args_list] == ['m1', 'm2', 'm3']
        assert summary.forwarded == 2
        assert summary.failed == 1
        assert summary.marked_read == 3

    def test_no_unread_messages(self, mailbox, credential_provider):
        mailbox.list_unread_message_ids.return_value = []
        forward = Mock()
        poller = MailboxPoller(mailbox, credential_provider, forward=forward)

        summary = poller.poll(now=NOW)

        forward.assert_not_called()
        mailbox.mark_read.assert_not_called()
        credential_provider.get_access_token.assert_not_called()
        assert summary.threads_scanned == 1

    def test_unreadable_message_is_marked_read(self, mailbox, credential_provider):
        """Test a message that cannot be loaded counts as failed and is consumed."""
        mailbox.get_message.side_effect = ValueError('bad base64')
        forward = Mock()
        poller = MailboxPoller(mailbox, credential_provider, forward=forward)

        summary = poller.poll(now=NOW)

        forward.assert_not_called()
        mailbox.mark_read.assert_called_once_with('m1')
        assert summary.failed == 1

    def test_thread_failure_skips_thread(self, mailbox, credential_provider):
        mailbox.search_threads.return_value = ['t1', 't2']
        mailbox.list_unread_message_ids.side_effect = [RuntimeError('thread gone'), ['m2']]
        poller = MailboxPoller(mailbox, credential_provider, forward=Mock(return_value='ok'))

        summary = poller.poll(now=NOW)

        mailbox.mark_read.assert_called_once_with('m2')
        assert summary.forwarded == 1

    def test_mark_read_failure_is_logged(self, mailbox, credential_provider, caplog):
        mailbox.search_threads.return_value = ['t1']
        mailbox.list_unread_message_ids.return_value = ['m1', 'm2']
        mailbox.mark_read.side_effect = [RuntimeError('quota'), None]
        poller = MailboxPoller(mailbox, credential_provider, forward=Mock(return_value='ok'))

        summary = poller.poll(now=NOW)

        assert mailbox.mark_read.call_count == 2
        assert summary.forwarded == 2
        assert summary.marked_read == 1
        errors = [r for r in caplog.records if r.levelname == 'ERROR']
        assert len(errors) == 1
        assert 'Failed to mark message m1 as read' in errors[0].getMessage()

    def test_forward_is_logged_with_payload(self, mailbox, credential_provider, caplog):
        poller = MailboxPoller(mailbox, credential_provider, forward=Mock(return_value='ok'))

        with caplog.at_level('INFO'):
            poller.poll(now=NOW)

        assert '"plainBody": "New task posted: **2023-05-15T14:30:00**"' in caplog.text
        assert '"receivedAt": "Mon, 15 May 2023 14:30:05 +0000"' in caplog.text

    def test_authorization_failure_aborts_cycle(self, mailbox, credential_provider):
        """Test a token failure stops the cycle without consuming the message."""
        mailbox.list_unread_message_ids.return_value = ['m1', 'm2']
        credential_provider.get_access_token.side_effect = AuthorizationError('refresh revoked')
        forward = Mock()
        poller = MailboxPoller(mailbox, credential_provider, forward=forward)

        summary = poller.poll(now=NOW)

        assert summary.aborted is True
        assert summary.error_message == 'refresh revoked'
        forward.assert_not_called()
        mailbox.mark_read.assert_not_called()
        credential_provider.get_access_token.assert_called_once()

    @patch('integrations.google_oauth.get_ssm_client')
    def test_token_store_unreachable_aborts_cycle(self, mock_get_ssm, mailbox):
        """Test an SSM connection failure ends in an aborted summary."""
        mock_get_ssm.return_value.get_parameter.side_effect = EndpointConnectionError(
            endpoint_url="https://ssm.us-west-2.amazonaws.com"
        )
        forward = Mock()
        poller = MailboxPoller(mailbox, GoogleCredentialProvider(), forward=forward)

        summary = poller.poll(now=NOW)

        assert summary.aborted is True
        assert 'Could not read stored OAuth data' in summary.error_message
        forward.assert_not_called()
        mailbox.mark_read.assert_not_called()

    def test_search_failure_propagates(self, mailbox, credential_provider):
        mailbox.search_threads.side_effect = RuntimeError('search failed')
        poller = MailboxPoller(mailbox, credential_provider, forward=Mock())

        with pytest.raises(RuntimeError, match="search failed"):
            poller.poll(now=NOW)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
