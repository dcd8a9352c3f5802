"""
Document store operations for processed task requests.

Records are appended to a DynamoDB table (one item per accepted request).
There are no updates or deletes. The table handle is created on first use and
reused across warm invocations.
"""

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

# Configuration from environment
TABLE_NAME = os.environ.get('CONVERSATIONS_TABLE', 'conversations')
ENVIRONMENT = os.environ.get('ENVIRONMENT', 'dev')
STORE_CREDENTIALS_FILE = os.environ.get('STORE_CREDENTIALS_FILE', 'aws-store-creds.json')

# Configure DynamoDB client with timeouts to prevent infinite hangs
dynamodb_config = Config(
    retries={
        'max_attempts': 1,  # 1 attempt total (no retries)
        'mode': 'standard'
    },
    connect_timeout=10,
    read_timeout=30
)

# Process-wide table handle, initialized by get_table()
_table = None


class StorageError(Exception):
    """Raised when a record cannot be written to the document store."""
    pass


def _load_credentials_file(path: str) -> Optional[Dict[str, Any]]:
    """
    Load explicit store credentials for local development.

    Expected keys: aws_access_key_id, aws_secret_access_key, region_name
    and optionally aws_session_token and endpoint_url (DynamoDB Local).

    Returns:
        Dict of credentials, or None if the file is missing or unreadable
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            credentials = json.load(f)
        logger.info(f"Loaded store credentials from local file: {path} (development mode)")
        return credentials
    except (OSError, ValueError) as e:
        logger.info(f"Note: No usable local credentials file ({e}), using default credentials")
        return None


def _initialize_table():
    """
    Create the DynamoDB table resource.

    Development mode reads explicit credentials from STORE_CREDENTIALS_FILE;
    everywhere else the default credential chain is used.

    Returns:
        boto3 DynamoDB Table resource
    """
    credentials = None
    if ENVIRONMENT == 'development':
        credentials = _load_credentials_file(STORE_CREDENTIALS_FILE)
    else:
        logger.info("Using default credentials (production mode)")

    if credentials:
        endpoint_url = credentials.pop('endpoint_url', None)
        session = boto3.session.Session(**credentials)
        dynamodb = session.resource('dynamodb', config=dynamodb_config, endpoint_url=endpoint_url)
        logger.info("Initialized document store with explicit credentials")
    else:
        dynamodb = boto3.resource('dynamodb', config=dynamodb_config)
        logger.info("Initialized document store with default credentials")

    return dynamodb.Table(TABLE_NAME)


def get_table():
    """Return the process-wide table handle, creating it on first use."""
    global _table
    if _table is None:
        _table = _initialize_table()
        logger.info(f"Document store table ready: {TABLE_NAME}")
    return _table


def is_configured() -> bool:
    """Check if a table name is configured."""
    return bool(TABLE_NAME)


def _to_item(record: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a JSON-shaped record to a DynamoDB item (floats -> Decimal)."""
    return json.loads(json.dumps(record), parse_float=Decimal)


def store_record(record: Dict[str, Any]) -> str:
    """
    Append one record to the conversations table.

    Args:
        record: Record to store; 'timestamp' is added if the caller did not
            supply one

    Returns:
        str: The document id assigned to the new record

    Raises:
        StorageError: If the write fails

    Example:
        >>> doc_id = store_record({'type': 'EMAIL_PROCESSED', 'processed': True})
        >>> len(doc_id)
        32
    """
    logger.info(f"Attempting to store data: {json.dumps(record, default=str)}")

    item = dict(record)
    if not item.get('timestamp'):
        item['timestamp'] = datetime.now(timezone.utc).isoformat()

    doc_id = uuid.uuid4().hex
    item['id'] = doc_id

    try:
        get_table().put_item(
            Item=_to_item(item),
            ConditionExpression='attribute_not_exists(id)'
        )
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', 'Unknown')
        error_message = e.response.get('Error', {}).get('Message', str(e))

        logger.error(
            f"Failed to store record: table={TABLE_NAME}, "
            f"error_code={error_code}, error_message={error_message}"
        )
        raise StorageError(f"Failed to store record in {TABLE_NAME}: {error_message}") from e
    except BotoCoreError as e:
        logger.error(f"Failed to store record: table={TABLE_NAME}, error={e}")
        raise StorageError(f"Failed to store record in {TABLE_NAME}: {e}") from e

    logger.info(f"Document written with ID: {doc_id}")
    return doc_id
