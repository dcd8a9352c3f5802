"""
Service functions for external stores used by the Lambda handlers.

This package contains the document store writer and the Gmail mailbox client.
"""

__all__ = ['document_store', 'gmail']
