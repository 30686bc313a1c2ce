"""
Exception hierarchy for Weblate Notifier.

Only ``ConfigurationError`` is terminal for an invocation; every other
error is recorded against a single project or notification.
"""


class NotifierError(Exception):
    """Base class for all Weblate Notifier errors."""


class ConfigurationError(NotifierError):
    """
    Raised when required credentials are missing.

    Attributes
    ----------
    has_token : bool
        Whether a bot token was found.
    has_chat_id : bool
        Whether a chat ID was found.
    """

    def __init__(self, message: str, has_token: bool = False, has_chat_id: bool = False):
        super().__init__(message)
        self.has_token = has_token
        self.has_chat_id = has_chat_id


class FetchError(NotifierError):
    """Raised when changes cannot be fetched from the source."""


class ParseError(NotifierError):
    """Raised when a single field of a change record cannot be parsed."""


class DeliveryError(NotifierError):
    """Raised when a message could not be delivered after all retries."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class DeadlineExceeded(NotifierError):
    """Raised when the soft execution budget of a run is exhausted."""
