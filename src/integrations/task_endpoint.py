"""
Outbound forwarding of raw emails to the task request endpoint.

Each unread email is POSTed as plain text with a bearer token. There are no
retries: a failed call raises TransportError and the caller decides what to
do with it.

Usage:
    from integrations import task_endpoint

    body = task_endpoint.forward_email(raw_email.to_text(), access_token)
"""

import logging
import os
import time

import requests

logger = logging.getLogger(__name__)

TASK_ENDPOINT_URL = os.environ.get('TASK_ENDPOINT_URL', '')

# (connect, read) timeouts in seconds
REQUEST_TIMEOUT = (10, 60)


class ConfigurationError(Exception):
    """Raised when the endpoint URL is not configured."""
    pass


class TransportError(Exception):
    """Raised when the outbound call fails or returns a non-2xx status."""
    pass


def forward_email(text: str, access_token: str, url: str = None) -> str:
    """
    POST email text to the task request endpoint.

    Args:
        text: Plain text email content
        access_token: Bearer token for the Authorization header
        url: Endpoint URL (defaults to TASK_ENDPOINT_URL)

    Returns:
        str: Response body text

    Raises:
        ConfigurationError: If no endpoint URL is configured
        TransportError: If the request fails or the status is not 2xx
    """
    url = url or TASK_ENDPOINT_URL
    if not url:
        raise ConfigurationError(
            "TASK_ENDPOINT_URL environment variable is required but not set"
        )

    headers = {
        'Content-Type': 'text/plain',
        'Authorization': f'Bearer {access_token}',
    }

    start_time = time.time()
    try:
        response = requests.post(
            url,
            data=text.encode('utf-8'),
            headers=headers,
            timeout=REQUEST_TIMEOUT
        )
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Error calling task endpoint: {e}")
        raise TransportError(str(e)) from e

    logger.info(
        f"Task endpoint call succeeded: status={response.status_code}, "
        f"execution_time={time.time() - start_time:.2f}s"
    )
    return response.text
