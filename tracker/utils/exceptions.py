"""
Custom exceptions for the player tracking pipeline.

Every failure a single player's update can hit is one of these, so the
runner can record it against that player and carry on with the batch.
"""

class TrackerException(Exception):
    """Base exception for tracker errors."""
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

class FetchError(TrackerException):
    """Raised when the hiscores source cannot be reached after every retry."""
    def __init__(self, username: str, attempts: int, reason: str = None):
        super().__init__(
            f"Failed to fetch stats for '{username}' after {attempts} attempts: {reason or 'unknown error'}"
        )
        self.username = username
        self.attempts = attempts
        self.reason = reason

class ParseError(TrackerException):
    """Raised when a stats payload does not match the expected schema."""
    def __init__(self, username: str, reason: str):
        super().__init__(f"Malformed stats payload for '{username}': {reason}")
        self.username = username
        self.reason = reason

class StoreError(TrackerException):
    """Raised when snapshot store operations fail."""
    def __init__(self, operation: str, details: str = None):
        super().__init__(f"Store error during {operation}: {details}")
        self.operation = operation
        self.details = details
