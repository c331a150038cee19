"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class CourierError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(CourierError):
    """Raised for issues related to configuration loading or validation."""


class FeedError(CourierError):
    """Raised when a subject's feed cannot be fetched or parsed."""


class DaemonError(CourierError):
    """Base class for failures talking to the download daemon."""


class SessionError(DaemonError):
    """Raised when the daemon does not hand out a session token."""


class SessionExhaustedError(DaemonError):
    """Raised when the daemon keeps rejecting refreshed session tokens."""

    def __init__(self, method: str, attempts: int):
        super().__init__(
            f"RPC '{method}' still rejected with 409 after {attempts} attempts."
        )
        self.method = method
        self.attempts = attempts


class RPCError(DaemonError):
    """Raised on transport failures or unexpected HTTP status codes."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ProtocolError(DaemonError):
    """Raised when the daemon answers with a non-success result."""

    def __init__(self, method: str, result: str):
        super().__init__(f"RPC '{method}' failed: {result}")
        self.method = method
        self.result = result


class StoreError(CourierError):
    """Raised when the persisted store cannot be read or written."""


class NotificationError(CourierError):
    """Raised when a message cannot be delivered to a channel or recipient."""


class InvalidMagnetLinkError(CourierError):
    """Raised when a magnet URI is malformed or lacks a display name."""


class UnknownCategoryError(CourierError):
    """Raised when a download category is not one of the known categories."""

    def __init__(self, category: str):
        super().__init__(f"Unknown category: {category!r}")
        self.category = category


class UnexpectedTorrentCountError(CourierError):
    """Raised when the daemon returns a different number of torrents than asked."""

    def __init__(self, want: int, got: int):
        super().__init__(f"Scraped {got} torrents instead of {want}.")
        self.want = want
        self.got = got


class CommandError(CourierError):
    """Raised when a chat command cannot be handled."""


class CommandNotFoundError(CommandError):
    """Raised when no registered command matches a name or form ID."""
