"""
AWS Lambda handler for inbound task requests (API Gateway / Function URL).

Thin orchestration layer that delegates to RequestProcessor.
Accepts either raw task email text or a pre-built JSON envelope.
"""

import base64
import json
import logging
import os
from typing import Dict, Any, Optional

from domain.models import RequestResult
from domain.request_processor import RequestProcessor
from services import document_store

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))

# Add console handler for local testing (AWS Lambda provides handlers automatically)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    formatter = logging.Formatter('%(levelname)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

ENVIRONMENT = os.environ.get('ENVIRONMENT', 'dev')

# Initialize processor once at module level (reused across invocations)
request_processor = RequestProcessor()


def _extract_body(event: Dict[str, Any]) -> Any:
    """Return the request body as text, decoding base64 proxy bodies."""
    body = event.get('body')
    if body and event.get('isBase64Encoded'):
        body = base64.b64decode(body).decode('utf-8')
    return body


def _content_type(event: Dict[str, Any]) -> Optional[str]:
    """Return the Content-Type header (header names are case-insensitive)."""
    for name, value in (event.get('headers') or {}).items():
        if name.lower() == 'content-type':
            return value
    return None


def _to_http_response(result: RequestResult) -> Dict[str, Any]:
    """Convert a RequestResult to an API Gateway proxy response."""
    if result.is_text:
        return {
            'statusCode': result.status_code,
            'headers': {'Content-Type': 'text/plain'},
            'body': result.body
        }

    return {
        'statusCode': result.status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(result.body)
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Process one task request.

    Expected event format (proxy integration):
    {
        "body": "New task posted: **...**\\n**Type: Title: ...**",
        "isBase64Encoded": false
    }

    Returns:
        200 {success, message, requestId, parsedData}
        400 "Invalid JSON structure" (text/plain)
        500 {success: false, message, error}
    """
    logger.info(f"Environment: {ENVIRONMENT}")

    try:
        body = _extract_body(event)
    except (ValueError, UnicodeDecodeError) as e:
        logger.error(f"Could not decode request body: {e}")
        return _to_http_response(RequestResult(
            status_code=500,
            body={'success': False, 'message': "Error processing request", 'error': str(e)}
        ))

    result = request_processor.process_request(body, _content_type(event))

    if result.success:
        logger.info(f"Stored request {result.request_id}")
    else:
        logger.warning(f"Request finished with status {result.status_code}")

    return _to_http_response(result)


def health_check(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Simple health check endpoint for monitoring.
    """
    return {
        'statusCode': 200,
        'body': json.dumps({
            'status': 'healthy',
            'environment': ENVIRONMENT,
            'storeConfigured': document_store.is_configured()
        })
    }
