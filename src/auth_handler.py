"""
AWS Lambda handlers for the one-time operator authorization.

start_authorization: page with a link to Google's consent screen
auth_callback: redirect target; exchanges the code and stores the token
"""

import html
import logging
import os
from typing import Dict, Any

from integrations.google_oauth import (
    AuthorizationError,
    ConfigurationError,
    GoogleCredentialProvider,
)

logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))

credential_provider = GoogleCredentialProvider()


def _html_response(status_code: int, content: str) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'text/html; charset=utf-8'},
        'body': content
    }


def start_authorization(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Render the authorization link for the operator."""
    try:
        auth_url = credential_provider.authorization_url()
    except (AuthorizationError, ConfigurationError) as e:
        logger.error(f"Could not start authorization: {e}")
        return _html_response(500, 'Authorization is not available.')

    return _html_response(
        200,
        f'<a href="{html.escape(auth_url)}" target="_blank">Authorize</a>. '
        'Reopen this page when authorization is complete.'
    )


def auth_callback(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Complete the authorization with the code Google sent back."""
    params = event.get('queryStringParameters') or {}

    if params.get('error') or not params.get('code'):
        logger.warning(f"Authorization denied: error={params.get('error')}")
        return _html_response(200, 'Authorization denied.')

    try:
        credential_provider.complete_authorization(params['code'], params.get('state'))
    except (AuthorizationError, ConfigurationError) as e:
        logger.error(f"Authorization failed: {e}")
        return _html_response(200, 'Authorization denied.')

    logger.info("Operator authorization completed")
    return _html_response(200, 'Success! You can close this tab.')
