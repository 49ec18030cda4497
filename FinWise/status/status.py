"""Status definitions and exceptions for FinWise.

This module provides:
    - Status: enumeration of possible client states
    - STATUS_MESSAGE: user-facing messages for each status
    - get_message: retrieve the message for a status
    - BaseStatusException: base exception carrying a Status
    - report: log a current failure and broadcast it as a notice
    - Specific exceptions raised by the gateway, session and synchronizer
"""
import enum
import logging
from typing import Dict, Optional


class Status(enum.StrEnum):
    """Enumeration of client status codes."""
    UnknownStatus = enum.auto()
    Okay = enum.auto()

    # Config status
    ConfigNotFound = enum.auto()
    ConfigInvalid = enum.auto()

    # Session status
    NotAuthenticated = enum.auto()
    CredentialNotFound = enum.auto()

    # Remote service status
    NetworkUnavailable = enum.auto()
    ServerError = enum.auto()


STATUS_MESSAGE: Dict[Status, str] = {
    Status.UnknownStatus: 'Unknown status. Please check the settings.',
    Status.Okay: 'Everything is okay.',

    Status.ConfigNotFound: 'Could not find the client config.',
    Status.ConfigInvalid: 'The client config seems to be incomplete, or contains invalid values.',

    Status.NotAuthenticated: 'Authentication error.',
    Status.CredentialNotFound: 'You are not signed in. Please sign in first.',

    Status.NetworkUnavailable: 'The server could not be reached. Please check your connection.',
    Status.ServerError: 'The server could not complete the request.',
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
    """Base exception for status-based errors in FinWise.

    Exceptions are often raised on worker threads for requests whose
    results may no longer matter. They are not broadcast on construction;
    the component that owns the request calls :func:`report` once it has
    decided the failure is current.

    Attributes:
        status (Status): Status code associated with this error.
        status_message (str): User-facing message for the status.
        message (str): The additional context, if any.

    Args:
        message (str): Optional additional context for the error.
    """
    status = Status.UnknownStatus

    def __init__(self, message: Optional[str] = None):
        self.status_message = get_message(self.status)
        self.message = message
        exception_message = f'{self.status_message} {message}' if message else self.status_message
        super().__init__(exception_message)

        logging.debug(f'{type(self).__name__}: {exception_message}')


def report(error: BaseException) -> None:
    """Log a failure and broadcast it on ``signals.error``.

    Args:
        error: The failure. Status exceptions broadcast their context message,
            falling back to the status message; other exceptions their text.
    """
    if isinstance(error, BaseStatusException):
        notice = error.message or error.status_message
    else:
        notice = str(error) or type(error).__name__
    logging.error(str(error) or notice)

    from ..ui.actions import signals
    signals.error.emit(notice)


class UnknownException(BaseStatusException):
    """Exception for an unknown error during status processing."""
    pass


class ConfigNotFoundError(BaseStatusException):
    """Exception raised when the client configuration file cannot be found."""
    status = Status.ConfigNotFound


class ConfigInvalidError(BaseStatusException):
    """Exception raised when the client configuration is invalid or malformed."""
    status = Status.ConfigInvalid


class AuthError(BaseStatusException):
    """Authentication or registration was rejected, or the identity lookup failed.

    ``message`` holds the server-supplied detail, or ``'Error'`` when the
    server did not send one.
    """
    status = Status.NotAuthenticated

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or 'Error')


class CredentialNotFoundError(BaseStatusException):
    """Exception raised when a request needs a credential but none is set."""
    status = Status.CredentialNotFound


class NetworkError(BaseStatusException):
    """Transport-level failure: the server is unreachable or the request timed out."""
    status = Status.NetworkUnavailable


class ServerError(BaseStatusException):
    """Non-success status returned by a data read or write endpoint.

    Attributes:
        status_code (int): The HTTP status code, when known.
    """
    status = Status.ServerError

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
