"""
OAuth2 authorization-code login for a single client application.

Design goals:
- Provider client is an explicit value (no process-wide singleton).
- Cookie-based session (signed, HttpOnly); nothing stored server-side.
- Fail fast at startup when a credential or the signing secret is missing.
"""
