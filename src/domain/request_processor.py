"""
Task request pipeline - core business logic.

This module handles one inbound task request end to end:
1. Classify the body (raw task email text or a pre-built envelope)
2. Extract task fields from raw text
3. Validate the envelope structure
4. Store the processed record
5. Return a RequestResult (200, 400 or 500)

All errors are caught and returned as RequestResult.
No exceptions propagate out of the public methods.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from .extractor import is_task_email, parse_email_data
from .models import RequestResult, build_stored_record
from .validator import ValidationError, validate_envelope
from services import document_store

logger = logging.getLogger(__name__)

BODY_RAW_TEXT = 'raw_text'
BODY_ENVELOPE = 'envelope'

SUCCESS_MESSAGE = "Email processed and data stored successfully"
ERROR_MESSAGE = "Error processing request"


def classify_body(body: Any, content_type: Optional[str] = None) -> Tuple[str, Any]:
    """
    Decide whether a request body is raw task email text or an envelope.

    A body that decodes to a JSON object, or that arrives as
    application/json, is always an envelope. Only other text is checked for
    the task marker.

    Args:
        body: Request body (string from HTTP, or already-decoded object)
        content_type: Request Content-Type header, if known

    Returns:
        (BODY_RAW_TEXT, text) or (BODY_ENVELOPE, candidate). A string that is
        not valid JSON is passed through as the candidate and will fail
        validation.
    """
    if not isinstance(body, (str, bytes)):
        return BODY_ENVELOPE, body

    try:
        decoded = json.loads(body)
    except ValueError:
        decoded = body

    if isinstance(decoded, dict) or _is_json_content_type(content_type):
        return BODY_ENVELOPE, decoded

    if is_task_email(body):
        return BODY_RAW_TEXT, body

    return BODY_ENVELOPE, decoded


def _is_json_content_type(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.split(';')[0].strip().lower() == 'application/json'


class RequestProcessor:
    """
    Turns inbound task requests into stored records.

    Returns RequestResult for explicit success/failure handling.
    """

    def process_request(self, body: Any, content_type: Optional[str] = None) -> RequestResult:
        """
        Process one inbound request body.

        Args:
            body: Raw text or JSON body
            content_type: Request Content-Type header, if known

        Returns:
            RequestResult with status 200, 400 or 500
        """
        logger.info("Email processing and storage request received")

        try:
            kind, payload = classify_body(body, content_type)

            if kind == BODY_RAW_TEXT:
                envelope = parse_email_data(payload)
            else:
                envelope = payload

            try:
                validate_envelope(envelope)
            except ValidationError as e:
                logger.warning(f"Rejected request ({kind}): {e.message}")
                return RequestResult(status_code=400, body=e.message)

            record = build_stored_record(
                envelope,
                timestamp=datetime.now(timezone.utc).isoformat()
            )
            request_id = document_store.store_record(record)

            logger.info(f"Request stored: request_id={request_id}, source={kind}")

            return RequestResult(
                status_code=200,
                body={
                    'success': True,
                    'message': SUCCESS_MESSAGE,
                    'requestId': request_id,
                    'parsedData': envelope,
                },
                request_id=request_id
            )

        except Exception as e:
            logger.error(f"Error processing request: {e}", exc_info=True)

            return RequestResult(
                status_code=500,
                body={
                    'success': False,
                    'message': ERROR_MESSAGE,
                    'error': str(e),
                }
            )
