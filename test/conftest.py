from __future__ import annotations

import typing

import pytest

from netkit import WebService

from . import FakeSession, FakeSessionTask


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def service(session: FakeSession) -> typing.Generator[WebService, None, None]:
    with WebService("http://example.com/api", session=session) as service:
        yield service


@pytest.fixture
def last_task(session: FakeSession) -> typing.Callable[[], FakeSessionTask]:
    def get() -> FakeSessionTask:
        assert session.tasks, "no operation was created"
        return session.tasks[-1]

    return get
