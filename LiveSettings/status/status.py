"""Status definitions and exceptions for LiveSettings.

This module provides:
    - Status: enumeration of possible settings states
    - STATUS_MESSAGE: user-facing messages for each status
    - get_message: retrieve the message for a status
    - BaseStatusException: base exception carrying a Status
    - Specific exceptions (e.g., TypeMismatchException) raised by the settings core

Schema authoring errors (:class:`CyclicSchemaException`, :class:`NoDefaultValueException`,
:class:`SchemaInvalidException`) are programming errors and surface at definition time.
:class:`TypeMismatchException` is recoverable at the call site, and
:class:`StoreUnavailableException` should be caught by the host and shown to the user.
"""
import enum
import logging
from typing import Dict


class Status(enum.StrEnum):
    """Enumeration of settings status codes."""
    UnknownStatus = enum.auto()
    Okay = enum.auto()

    # Schema authoring status
    CyclicSchema = enum.auto()
    NoDefaultValue = enum.auto()
    SchemaInvalid = enum.auto()

    # Value status
    TypeMismatch = enum.auto()

    # Store status
    StoreUnavailable = enum.auto()
    StoreClosed = enum.auto()
    StoreReadOnly = enum.auto()
    FlushFailed = enum.auto()


STATUS_MESSAGE: Dict[Status, str] = {
    Status.UnknownStatus: 'Unknown status. Please check the settings.',
    Status.Okay: 'Everything is okay.',

    Status.CyclicSchema: 'The settings schema contains itself.',
    Status.NoDefaultValue: 'A settings property has no default value.',
    Status.SchemaInvalid: 'The settings schema is malformed.',

    Status.TypeMismatch: 'The settings value does not match the expected type.',

    Status.StoreUnavailable: 'Could not open the settings file. Check that the folder exists and is writable.',
    Status.StoreClosed: 'The settings store has already been closed.',
    Status.StoreReadOnly: 'The settings store was opened in read-only mode.',
    Status.FlushFailed: 'Could not save the settings file.',
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
    """Base exception for status-based errors in LiveSettings.

    Attributes:
        status (Status): Status code associated with this error.
        status_message (str): User-facing message for the status.
        detail (str): The additional context passed in, if any.

    Args:
        message (str): Optional additional context for the error.
    """
    status = Status.UnknownStatus

    def __init__(self, message: str = None):
        self.status_message = get_message(self.status)
        self.detail = message
        exception_message = f'{self.status_message} {message}' if message else self.status_message
        super().__init__(exception_message)

        logging.error(exception_message)

        from ..signals import signals
        signals.error.emit(message or self.status_message)


class UnknownException(BaseStatusException):
    """Exception for an unknown error during status processing."""
    pass


class CyclicSchemaException(BaseStatusException, ValueError):
    """Exception raised when a schema reachably contains itself through its sections."""
    status = Status.CyclicSchema


class NoDefaultValueException(BaseStatusException, ValueError):
    """Exception raised when a scalar property has neither a default nor is marked optional."""
    status = Status.NoDefaultValue


class SchemaInvalidException(BaseStatusException, ValueError):
    """Exception raised when a schema definition is malformed or references an unknown schema."""
    status = Status.SchemaInvalid


class TypeMismatchException(BaseStatusException, TypeError):
    """Exception raised when a value cannot be stored or read as the requested type."""
    status = Status.TypeMismatch


class StoreUnavailableException(BaseStatusException, OSError):
    """Exception raised when the backing settings file cannot be opened for reading and writing."""
    status = Status.StoreUnavailable


class StoreClosedException(BaseStatusException, RuntimeError):
    """Exception raised when a closed settings store is accessed."""
    status = Status.StoreClosed


class StoreReadOnlyException(BaseStatusException, PermissionError):
    """Exception raised when writing to a store opened in read-only mode."""
    status = Status.StoreReadOnly


class FlushFailedException(BaseStatusException, OSError):
    """Exception raised when pending settings could not be written to disk."""
    status = Status.FlushFailed
