"""
Integrations with remote parties: Google OAuth and the task request endpoint.
"""
