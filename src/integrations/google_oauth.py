"""
Google OAuth credential provider.

Implements the delegated authorization flow for the operator whose mailbox is
polled:

1. start: build the consent URL (operator opens it once in a browser)
2. callback: exchange the returned code for an access/refresh token pair
3. afterwards: load the stored token, refreshing it when expired

The protocol itself is handled by google-auth-oauthlib and google-auth. Token
pairs are stored per operator in SSM Parameter Store as SecureString
parameters.

Usage:
    from integrations.google_oauth import GoogleCredentialProvider

    provider = GoogleCredentialProvider()
    token = provider.get_access_token()
"""

import json
import logging
import os
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

logger = logging.getLogger(__name__)


# ============================================================================
# Custom Exception Classes
# ============================================================================

class ConfigurationError(Exception):
    """Raised when OAuth configuration is invalid or missing."""
    pass


class AuthorizationError(Exception):
    """Raised when no valid token can be obtained for the operator."""
    pass


# ============================================================================
# Module-Level Configuration
# ============================================================================

AUTH_URI = 'https://accounts.google.com/o/oauth2/auth'
TOKEN_URI = 'https://oauth2.googleapis.com/token'

SCOPES = [
    'https://www.googleapis.com/auth/cloud-platform',
    'https://www.googleapis.com/auth/gmail.modify',
]

GOOGLE_CLOUD_PROJECT = os.environ.get('GOOGLE_CLOUD_PROJECT', '')
CLIENT_ID = os.environ.get('GOOGLE_OAUTH_CLIENT_ID', '')
CLIENT_SECRET = os.environ.get('GOOGLE_OAUTH_CLIENT_SECRET', '')
CALLBACK_URL = os.environ.get('GOOGLE_OAUTH_CALLBACK_URL', '')
PARAMETER_PREFIX = os.environ.get('OAUTH_PARAMETER_PREFIX', '/email-task-intake/oauth')
OPERATOR_ID = os.environ.get('OPERATOR_ID', 'default')

ssm_config = Config(
    retries={
        'max_attempts': 1,
        'mode': 'standard'
    },
    connect_timeout=10,
    read_timeout=30
)

# Created on first use (SSM needs a region, which tests do not provide)
_ssm_client = None


def get_ssm_client():
    """Return the process-wide SSM client, creating it on first use."""
    global _ssm_client
    if _ssm_client is None:
        _ssm_client = boto3.client('ssm', config=ssm_config)
        logger.info("SSM client initialized with timeouts: connect=10s, read=30s, max_attempts=1")
    return _ssm_client


def _client_config() -> dict:
    """
    Build the OAuth client config for a web application.

    Raises:
        ConfigurationError: If client id, secret or callback URL is missing
    """
    missing = [
        name for name, value in (
            ('GOOGLE_OAUTH_CLIENT_ID', CLIENT_ID),
            ('GOOGLE_OAUTH_CLIENT_SECRET', CLIENT_SECRET),
            ('GOOGLE_OAUTH_CALLBACK_URL', CALLBACK_URL),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(
            f"OAuth environment variables are required but not set: {', '.join(missing)}"
        )

    return {
        'web': {
            'client_id': CLIENT_ID,
            'client_secret': CLIENT_SECRET,
            'project_id': GOOGLE_CLOUD_PROJECT,
            'auth_uri': AUTH_URI,
            'token_uri': TOKEN_URI,
            'redirect_uris': [CALLBACK_URL],
        }
    }


# ============================================================================
# Credential Provider
# ============================================================================

class GoogleCredentialProvider:
    """
    Obtains Google OAuth credentials for one operator.

    Attributes:
        operator_id: Key under which the operator's token is stored
        scopes: OAuth scopes requested at authorization time
    """

    def __init__(self, operator_id: str = OPERATOR_ID, scopes: Optional[list] = None):
        self.operator_id = operator_id
        self.scopes = scopes or SCOPES

    @property
    def token_parameter(self) -> str:
        return f"{PARAMETER_PREFIX}/{self.operator_id}/token"

    @property
    def state_parameter(self) -> str:
        return f"{PARAMETER_PREFIX}/{self.operator_id}/state"

    def _create_flow(self, state: Optional[str] = None) -> Flow:
        # No PKCE: the verifier would not survive between the two invocations
        return Flow.from_client_config(
            _client_config(),
            scopes=self.scopes,
            redirect_uri=CALLBACK_URL,
            state=state,
            autogenerate_code_verifier=False
        )

    def _read_parameter(self, name: str) -> Optional[str]:
        try:
            response = get_ssm_client().get_parameter(Name=name, WithDecryption=True)
            return response['Parameter']['Value']
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ParameterNotFound':
                return None
            logger.error(f"Failed to read parameter {name}: {e}")
            raise AuthorizationError(f"Could not read stored OAuth data: {e}") from e
        except BotoCoreError as e:
            logger.error(f"Failed to read parameter {name}: {e}")
            raise AuthorizationError(f"Could not read stored OAuth data: {e}") from e

    def _write_parameter(self, name: str, value: str) -> None:
        try:
            get_ssm_client().put_parameter(
                Name=name,
                Value=value,
                Type='SecureString',
                Overwrite=True
            )
        except ClientError as e:
            logger.error(f"Failed to write parameter {name}: {e}")
            raise AuthorizationError(f"Could not store OAuth data: {e}") from e
        except BotoCoreError as e:
            logger.error(f"Failed to write parameter {name}: {e}")
            raise AuthorizationError(f"Could not store OAuth data: {e}") from e

    def authorization_url(self) -> str:
        """
        Build the consent URL and remember its state for the callback.

        Returns:
            str: URL the operator must open to grant access
        """
        flow = self._create_flow()
        # offline + consent so Google returns a refresh token every time
        url, state = flow.authorization_url(
            access_type='offline',
            prompt='consent'
        )
        self._write_parameter(self.state_parameter, state)

        logger.info(f"Authorization URL created for operator {self.operator_id}")
        return url

    def complete_authorization(self, code: str, state: Optional[str]) -> Credentials:
        """
        Exchange an authorization code for a token pair and store it.

        Args:
            code: Authorization code from the callback
            state: State returned with the callback

        Returns:
            Credentials: The new credentials

        Raises:
            AuthorizationError: If the state does not match or the exchange fails
        """
        expected_state = self._read_parameter(self.state_parameter)
        if not expected_state or state != expected_state:
            logger.error(f"OAuth state mismatch for operator {self.operator_id}")
            raise AuthorizationError("OAuth state mismatch")

        flow = self._create_flow(state=state)
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            logger.error(f"Error exchanging authorization code: {e}")
            raise AuthorizationError(f"Authorization code exchange failed: {e}") from e

        credentials = flow.credentials
        self._save_credentials(credentials)
        logger.info(f"Stored new token for operator {self.operator_id}")
        return credentials

    def _save_credentials(self, credentials: Credentials) -> None:
        self._write_parameter(self.token_parameter, credentials.to_json())

    def _load_credentials(self) -> Optional[Credentials]:
        token_json = self._read_parameter(self.token_parameter)
        if not token_json:
            return None

        try:
            return Credentials.from_authorized_user_info(json.loads(token_json), self.scopes)
        except ValueError as e:
            logger.error(f"Stored token for operator {self.operator_id} is invalid: {e}")
            raise AuthorizationError(f"Stored token is invalid: {e}") from e

    def get_credentials(self) -> Credentials:
        """
        Return valid credentials, refreshing and re-storing them if expired.

        Raises:
            AuthorizationError: If no token is stored or the refresh fails
        """
        credentials = self._load_credentials()
        if credentials is None:
            raise AuthorizationError(
                f"No token stored for operator {self.operator_id}; "
                f"run the authorization flow first"
            )

        if credentials.valid:
            return credentials

        if not credentials.refresh_token:
            raise AuthorizationError("Stored token expired and has no refresh token")

        try:
            credentials.refresh(Request())
        except GoogleAuthError as e:
            logger.error(f"Refresh token expired or revoked: {e}")
            raise AuthorizationError(f"Token refresh failed: {e}") from e

        self._save_credentials(credentials)
        logger.info(f"Refreshed token for operator {self.operator_id}")
        return credentials

    def get_access_token(self) -> str:
        """Return a valid bearer token for outbound calls."""
        return self.get_credentials().token

