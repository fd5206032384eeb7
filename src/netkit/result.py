from __future__ import annotations

import typing

__all__ = ["Success", "Failure", "SUCCESS", "WebTaskResult", "is_failure"]


class Success:
    """The exchange, and every handler that ran so far, succeeded."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "Success()"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Success)

    def __hash__(self) -> int:
        return hash(Success)


class Failure:
    """The exchange or a handler failed with ``error``."""

    __slots__ = ("error",)

    def __init__(self, error: BaseException) -> None:
        self.error = error

    def __repr__(self) -> str:
        return f"Failure({self.error!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Failure) and other.error is self.error

    def __hash__(self) -> int:
        return hash((Failure, id(self.error)))


SUCCESS = Success()

WebTaskResult = typing.Union[Success, Failure]


def is_failure(result: WebTaskResult | None) -> bool:
    return isinstance(result, Failure)
