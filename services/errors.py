"""
Blood Request Desk service errors

Raised by the request store and inventory ledger; the HTTP layer maps them:
ValidationError -> 400, NotFoundError -> 404, StateError -> 409.
"""

from typing import Dict, Optional


class RequestDeskError(Exception):
    """Base class for request desk errors."""
    pass


class ValidationError(RequestDeskError):
    """Malformed or missing input. field_errors maps form field -> message."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.field_errors = dict(field_errors or {})


class NotFoundError(RequestDeskError):
    """Referenced request, hospital or blood type does not exist."""
    pass


class StateError(RequestDeskError):
    """Persisted state no longer satisfies the operation's preconditions."""
    pass
