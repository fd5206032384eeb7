#!/usr/bin/env python

"""
Dummy HTTP server the netkit test suite talks to.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import contextlib
import logging
import sys
import threading
import typing
from collections.abc import Generator

import tornado.httpserver
import tornado.ioloop
import tornado.netutil
import tornado.web

from dummyserver.handlers import TestingApp

log = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"


class ServerInfo(typing.NamedTuple):
    io_loop: tornado.ioloop.IOLoop
    server: tornado.httpserver.HTTPServer
    host: str
    port: int

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


def make_app() -> tornado.web.Application:
    return tornado.web.Application([(r".*", TestingApp)])


def run_tornado_app(
    app: tornado.web.Application, host: str
) -> tuple[tornado.httpserver.HTTPServer, int]:
    http_server = tornado.httpserver.HTTPServer(app)
    sockets = tornado.netutil.bind_sockets(0, address=host)
    port = sockets[0].getsockname()[1]
    http_server.add_sockets(sockets)
    return http_server, port


def get_unreachable_address() -> tuple[str, int]:
    # reserved as per rfc2606
    return ("something.invalid", 54321)


@contextlib.contextmanager
def serve_in_thread(
    app: tornado.web.Application | None = None, host: str = DEFAULT_HOST
) -> Generator[ServerInfo, None, None]:
    """
    Serve ``app`` from an IOLoop running in a background thread until the
    ``with`` block exits. Startup errors are raised in the calling thread.
    """
    started: concurrent.futures.Future[tuple[ServerInfo, asyncio.Event]] = (
        concurrent.futures.Future()
    )

    async def serve() -> None:
        io_loop = tornado.ioloop.IOLoop.current()
        server, port = run_tornado_app(app or make_app(), host)
        stop = asyncio.Event()
        started.set_result((ServerInfo(io_loop, server, host, port), stop))
        try:
            await stop.wait()
        finally:
            server.stop()
            await server.close_all_connections()

    with concurrent.futures.ThreadPoolExecutor(
        1, thread_name_prefix="dummyserver"
    ) as tpe:
        ran = tpe.submit(asyncio.run, serve())
        concurrent.futures.wait(
            (started, ran), return_when=concurrent.futures.FIRST_COMPLETED
        )
        if not started.done():
            # The loop died before the server was listening.
            ran.result()
        info, stop = started.result()
        log.debug("Dummy server listening on %s", info.base_url)
        try:
            yield info
        finally:
            info.io_loop.add_callback(stop.set)
        ran.result()


def main() -> int:
    # For debugging dummyserver itself - python -m dummyserver.server
    logging.basicConfig(level=logging.DEBUG)
    with serve_in_thread() as info:
        print(f"Listening on {info.base_url}")
        try:
            threading.Event().wait()
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
