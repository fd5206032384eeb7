from __future__ import annotations

import contextlib
import typing

from dummyserver.server import DEFAULT_HOST, ServerInfo, make_app, serve_in_thread


class HTTPDummyServerTestCase:
    """A simple HTTP server that runs when your test class runs

    Have your test class inherit from this one, and then a simple server
    will start when your tests run, and automatically shut down when they
    complete. For examples of what test requests you can send to the server,
    see the TestingApp in dummyserver/handlers.py.
    """

    host = DEFAULT_HOST

    port: typing.ClassVar[int]
    base_url: typing.ClassVar[str]
    server_info: typing.ClassVar[ServerInfo]
    _stack: typing.ClassVar[contextlib.ExitStack]

    @classmethod
    def _start_server(cls) -> None:
        with contextlib.ExitStack() as stack:
            info = stack.enter_context(serve_in_thread(make_app(), cls.host))
            cls._stack = stack.pop_all()
        cls.server_info = info
        cls.port = info.port
        cls.base_url = info.base_url

    @classmethod
    def _stop_server(cls) -> None:
        cls._stack.close()

    @classmethod
    def setup_class(cls) -> None:
        cls._start_server()

    @classmethod
    def teardown_class(cls) -> None:
        cls._stop_server()
