"""
Domain layer for task intake business logic.

This layer contains:
- Data models (envelope, stored record, result types)
- Field extraction and envelope validation
- Pipelines (inbound task request, mailbox poll cycle)
"""
