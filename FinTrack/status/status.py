"""Status definitions and exceptions for FinTrack.

This module provides:
    - Status: enumeration of possible application states
    - STATUS_MESSAGE: user-facing messages for each status
    - get_message: retrieve the message for a status
    - BaseStatusException: base exception carrying a Status
    - Specific exceptions (e.g., ServiceUnavailableException) for error handling in services
"""
import enum
import logging
from typing import Dict


class Status(enum.StrEnum):
    """Enumeration of application status codes."""
    UnknownStatus = enum.auto()
    Okay = enum.auto()

    # Config status
    SettingsNotFound = enum.auto()
    SettingsInvalid = enum.auto()

    # Authentication status
    ClientSecretNotFound = enum.auto()
    ClientSecretInvalid = enum.auto()
    CredsNotFound = enum.auto()
    NotAuthenticated = enum.auto()

    # Service status
    ServiceUnavailable = enum.auto()
    InsightsUnavailable = enum.auto()
    RatesUnavailable = enum.auto()

    # Data status
    TransactionInvalid = enum.auto()
    CacheInvalid = enum.auto()


STATUS_MESSAGE: Dict[Status, str] = {
    Status.UnknownStatus: 'Unknown status. Please check the settings.',
    Status.Okay: 'Everything is okay.',

    Status.SettingsNotFound: 'Could not find the settings file.',
    Status.SettingsInvalid: 'The settings seem to be incomplete, or contain invalid values.',

    Status.ClientSecretNotFound: 'Could not find the google client secret. Have you set up a valid Google client secret?',
    Status.ClientSecretInvalid: 'Could not verify the client secret. Have you set up a valid Google client secret?',
    Status.CredsNotFound: 'Could not find the credentials. Please sign in to your Google account.',
    Status.NotAuthenticated: 'Authentication error. Try signing in again to your Google account.',

    Status.ServiceUnavailable: 'Google Drive service is unavailable. Please check your connection.',
    Status.InsightsUnavailable: 'Unable to connect to the financial intelligence engine.',
    Status.RatesUnavailable: 'Could not update rates. Please check your connection.',

    Status.TransactionInvalid: 'The transaction contains invalid values.',
    Status.CacheInvalid: 'The local cache is invalid. Try resetting the cache.',
}


def get_message(status: Status) -> str:
    """
    Get the message for a given status.

    Args:
        status (Status): The status enum.

    Returns:
        str: The message associated with the status.
    """
    return STATUS_MESSAGE.get(status, 'Unknown status')


class BaseStatusException(Exception):
    """Base exception for status-based errors in FinTrack.

    Attributes:
        status (Status): Status code associated with this error.
        status_message (str): User-facing message for the status.
        http_status (int): Response code the server answers with when the error reaches an endpoint.

    Args:
        message (str): Optional additional context for the error.
    """
    status = Status.UnknownStatus
    http_status = 500

    def __init__(self, message: str = None):
        self.status_message = get_message(self.status)
        exception_message = f'{self.status_message} {message}' if message else self.status_message
        super().__init__(exception_message)

        logging.error(exception_message)

        from ..core.actions import signals
        signals.error.emit(message or self.status_message)


class UnknownException(BaseStatusException):
    """Exception for an unknown error during status processing."""
    pass


class SettingsNotFoundException(BaseStatusException):
    """Exception raised when the settings file cannot be found."""
    status = Status.SettingsNotFound


class SettingsInvalidException(BaseStatusException):
    """Exception raised when the settings are invalid or malformed."""
    status = Status.SettingsInvalid


class ClientSecretNotFoundException(BaseStatusException):
    """Exception raised when the Google OAuth client secret cannot be found."""
    status = Status.ClientSecretNotFound


class ClientSecretInvalidException(BaseStatusException):
    """Exception raised when the Google OAuth client secret is invalid or malformed."""
    status = Status.ClientSecretInvalid


class CredsNotFoundException(BaseStatusException):
    """Exception raised when a session carries no Google token bundle."""
    status = Status.CredsNotFound
    http_status = 401


class AuthenticationExceptionException(BaseStatusException):
    """Exception raised when user is not authenticated with Google services."""
    status = Status.NotAuthenticated
    http_status = 401


class ServiceUnavailableException(BaseStatusException):
    """Exception raised when the Google Drive service or the FinTrack server is unreachable."""
    status = Status.ServiceUnavailable


class InsightsUnavailableException(BaseStatusException):
    """Exception raised when the AI insight service fails."""
    status = Status.InsightsUnavailable


class RatesUnavailableException(BaseStatusException):
    """Exception raised when currency rates cannot be fetched."""
    status = Status.RatesUnavailable


class TransactionInvalidException(BaseStatusException):
    """Exception raised when a transaction or category edit is rejected."""
    status = Status.TransactionInvalid
    http_status = 400


class CacheInvalidException(BaseStatusException):
    """Exception raised when the local data cache is invalid or corrupted."""
    status = Status.CacheInvalid
