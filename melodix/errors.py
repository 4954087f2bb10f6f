"""
Melodix Errors - Exception types raised by the playback core.
"""


class MelodixError(Exception):
    """Base class for all Melodix errors."""


class ResourceUnavailableError(MelodixError):
    """An audio resource could not be loaded onto a channel."""

    def __init__(self, resource: str, reason: str = ''):
        self.resource = resource
        self.reason = reason
        message = f'Audio resource unavailable: {resource}'
        if reason:
            message += f' ({reason})'
        super().__init__(message)


class DecodeError(ResourceUnavailableError):
    """The resource exists but could not be decoded."""


class PersistenceError(MelodixError):
    """Durable storage rejected a write."""
