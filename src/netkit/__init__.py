"""
Fluent HTTP tasks with ordered, deferred response handlers, built on urllib3
"""

from __future__ import annotations

# Set default logging handler to avoid "No handler found" warnings.
import logging
import typing
from logging import NullHandler

from . import exceptions
from ._version import __version__
from .auth import ChallengeDisposition, ChallengeMethod, Credential
from .delegate import WebDelegate
from .pipeline import HandlerPipeline
from .request import CachePolicy, ParameterEncoding, PreparedRequest, WebRequest
from .response import URLResponse
from .result import SUCCESS, Failure, Success, WebTaskResult
from .service import WebService
from .session import Session, SessionTask, TaskState, TaskType
from .task import WebTask
from .util.request import placed_in_soap_envelope

__license__ = "MIT"
__version__ = __version__

__all__ = (
    "SUCCESS",
    "CachePolicy",
    "ChallengeDisposition",
    "ChallengeMethod",
    "Credential",
    "Failure",
    "HandlerPipeline",
    "ParameterEncoding",
    "PreparedRequest",
    "Session",
    "SessionTask",
    "Success",
    "TaskState",
    "TaskType",
    "URLResponse",
    "WebDelegate",
    "WebRequest",
    "WebService",
    "WebTask",
    "WebTaskResult",
    "add_stderr_logger",
    "exceptions",
    "placed_in_soap_envelope",
)

logging.getLogger(__name__).addHandler(NullHandler())


def add_stderr_logger(
    level: int = logging.DEBUG,
) -> logging.StreamHandler[typing.TextIO]:
    """
    Helper for quickly adding a StreamHandler to the logger. Useful for
    debugging.

    Returns the handler after adding it.
    """
    # This method needs to be in this __init__.py to get the __name__ correct
    # even if netkit is vendored within another package.
    logger = logging.getLogger(__name__)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.debug("Added a stderr logging handler to logger: %s", __name__)
    return handler


# ... Clean up.
del NullHandler
