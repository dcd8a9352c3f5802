"""
Pytest configuration and fixtures for all tests.
"""

import os
import sys
import pytest

# Add src to Python path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

# Set up test environment variables before importing any modules
os.environ.setdefault('ENVIRONMENT', 'test')
os.environ.setdefault('LOG_LEVEL', 'INFO')
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-west-2')
os.environ.setdefault('CONVERSATIONS_TABLE', 'conversations')
os.environ.setdefault('TASK_ENDPOINT_URL', 'https://tasks.example.com/process')
os.environ.setdefault('GOOGLE_CLOUD_PROJECT', 'test-project')
os.environ.setdefault('GOOGLE_OAUTH_CLIENT_ID', 'test-client-id.apps.googleusercontent.com')
os.environ.setdefault('GOOGLE_OAUTH_CLIENT_SECRET', 'test-client-secret')
os.environ.setdefault('GOOGLE_OAUTH_CALLBACK_URL', 'https://auth.example.com/callback')
os.environ.setdefault('OPERATOR_ID', 'test-operator')

SAMPLE_TASK_EMAIL = (
    "New task posted: **2023-05-15T14:30:00**\n"
    "**Type: Title: Fix leaky faucet, Description: Sink leaks, "
    "Address: 123 Main St, New York, NY 10001, Due: 2023-05-20, Budget: $150**"
)


@pytest.fixture
def sample_task_email():
    """Task notification email text in the posted-task template."""
    return SAMPLE_TASK_EMAIL


@pytest.fixture
def mock_context():
    """Mock Lambda context."""
    from unittest.mock import Mock
    context = Mock()
    context.request_id = "test-request-id"
    context.invoked_function_arn = "arn:aws:lambda:us-west-2:123456789012:function:test"
    return context
