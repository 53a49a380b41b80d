"""
Session store exceptions.
"""


class SessionStoreError(Exception):
    """
    Base exception for session store failures.

    Backend-specific errors (filesystem, Redis) are wrapped in this class so
    callers can handle any store failure with a single except clause.
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SessionNotFoundError(SessionStoreError):
    """Raised by ``update`` when the session id does not exist."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}", details={"session_id": session_id})
        self.session_id = session_id
