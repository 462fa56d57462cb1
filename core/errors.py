"""
Error taxonomy for the dialog engine and its collaborators.
"""

from typing import Any, Optional


class BotError(Exception):
    """Base class for every error the bot raises on purpose."""


class ValidationError(BotError):
    """Missing required slot or malformed value (e.g. a bad class identifier)."""

    def __init__(self, message: str, fields: Optional[list] = None):
        super().__init__(message)
        self.fields = list(fields or [])


class DuplicateError(BotError):
    """Assignment code collision. Carries the record that already owns the code."""

    def __init__(self, code: str, existing: Any = None):
        super().__init__(f"assignment code already exists: {code}")
        self.code = code
        self.existing = existing


class NotFoundError(BotError):
    """Unknown assignment code, assignment id or identity."""


class TransientStoreError(BotError):
    """Retryable failure talking to the persistent store."""


class TransportQuirkError(BotError):
    """Benign send-side anomaly; the message most likely went out."""


class RoleForbiddenError(BotError):
    """The sender's role may not use the requested feature."""

    def __init__(self, required_role: str):
        super().__init__(f"feature restricted to role: {required_role}")
        self.required_role = required_role
