"""
AWS Lambda handler for the scheduled mailbox sweep (EventBridge rule).

Thin orchestration layer that delegates to MailboxPoller.
Policy: every unread message found is marked read, even when forwarding it
failed (no retries, no redelivery). Errors logged to CloudWatch.
"""

import logging
import os
from typing import Dict, Any

from domain.mailbox_poller import MailboxPoller
from integrations.google_oauth import AuthorizationError, GoogleCredentialProvider
from services.gmail import GmailMailbox

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))

# Add console handler for local testing (AWS Lambda provides handlers automatically)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    formatter = logging.Formatter('%(levelname)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

credential_provider = GoogleCredentialProvider()


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Run one poll cycle.

    Args:
        event: Scheduled event (contents unused)
        context: Lambda context

    Returns:
        Dict with the cycle summary; never raises
    """
    logger.info("=" * 70)
    logger.info("Mailbox Poller - Started")
    logger.info("=" * 70)

    try:
        mailbox = GmailMailbox.from_credentials(credential_provider.get_credentials())
        poller = MailboxPoller(mailbox, credential_provider)
        summary = poller.poll()
    except AuthorizationError as e:
        logger.error(f"Authorization failed, poll cycle skipped: {e}")
        return {'status': 'aborted', 'error': str(e)}
    except Exception as e:
        logger.error(f"Poll cycle failed: {e}", exc_info=True)
        return {'status': 'failed', 'error': str(e)}

    # Log summary
    logger.info("=" * 70)
    logger.info(f"Poll cycle complete: {summary.threads_scanned} thread(s) scanned")
    logger.info(f"  Forwarded: {summary.forwarded}")
    logger.info(f"  Errors: {summary.failed}")
    logger.info(f"  Marked read: {summary.marked_read}")
    if summary.aborted:
        logger.warning(f"  Aborted: {summary.error_message}")
    logger.info("=" * 70)

    return {
        'status': 'aborted' if summary.aborted else 'completed',
        'summary': summary.to_dict()
    }
