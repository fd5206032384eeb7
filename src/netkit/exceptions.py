from __future__ import annotations

import typing

_TYPE_REDUCE_RESULT = typing.Tuple[
    typing.Callable[..., object], typing.Tuple[object, ...]
]

# Base Exceptions


class NetKitError(Exception):
    """Base exception used by this module."""

    pass


class NetKitWarning(Warning):
    """Warned when a task is configured in a way that has no effect."""

    pass


class TransportError(NetKitError):
    """Raised when the network exchange itself fails.

    The error raised by the networking stack, if any, is available as
    ``original_error`` and as ``__cause__``.
    """

    original_error: Exception | None

    def __init__(self, message: str, error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = error

    def __reduce__(self) -> _TYPE_REDUCE_RESULT:
        # For pickling purposes.
        return self.__class__, (self.args[0], self.original_error)


class BodyDecodeError(NetKitError):
    """Raised when a response body can't be decoded into structured data."""

    original_error: Exception | None

    def __init__(self, message: str, error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = error

    def __reduce__(self) -> _TYPE_REDUCE_RESULT:
        # For pickling purposes.
        return self.__class__, (self.args[0], self.original_error)


class AuthenticationError(NetKitError):
    """Raised when an authentication handler fails to answer a challenge."""

    pass


class ConfigurationError(NetKitError):
    """Base exception for tasks that were configured or dispatched wrongly."""

    pass


# Leaf Exceptions


class CancelledError(TransportError):
    """Raised when an operation was cancelled before it completed.

    This covers explicit calls to ``cancel()`` as well as the cancellation
    that follows an expired :meth:`~netkit.task.WebTask.resume_and_wait`.
    """

    def __init__(self, message: str = "operation was cancelled") -> None:
        super().__init__(message)

    def __reduce__(self) -> _TYPE_REDUCE_RESULT:
        # For pickling purposes.
        return self.__class__, (self.args[0],)


class EmptyResponseBodyError(BodyDecodeError):
    """Raised when a JSON handler is registered but the response has no body."""

    def __init__(self, message: str = "response body is empty") -> None:
        super().__init__(message)

    def __reduce__(self) -> _TYPE_REDUCE_RESULT:
        # For pickling purposes.
        return self.__class__, (self.args[0],)


class SessionUnavailableError(ConfigurationError):
    """Raised when a task is dispatched after its web service went away."""

    pass


class TaskAlreadyDispatchedError(ConfigurationError):
    """Raised when a task is reconfigured after it has been dispatched."""

    pass


class LocationValueError(ValueError, NetKitError):
    """Raised when there is something wrong with a given URL input."""

    pass
