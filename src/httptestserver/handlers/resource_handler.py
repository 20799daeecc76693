"""
=============================================================================
REQUEST HANDLING
=============================================================================

Runs on a pool worker, once per accepted connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    handle(conn)                                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   read_request()          EOF / too large → close, nothing recorded │
    │        │                                                             │
    │   parse()                 HTTPParseError  → close, nothing recorded │
    │        │                                                             │
    │   server recorder.record(request)                                    │
    │        │                                                             │
    │   registry.resolve()      NOT_FOUND          → "404 Not Found"      │
    │        │                  METHOD_NOT_ALLOWED → "405 ..."            │
    │        │                                                             │
    │   resource recorder.record(request)                                  │
    │        │                                                             │
    │   render body, sleep delay                                           │
    │        │                                                             │
    │        ├── plain:     write response ──────────────────► close      │
    │        │                                                             │
    │        └── streaming: attach (write head + body, track)             │
    │                       wait_for_disconnect()                          │
    │                       detach ──────────────────────────► close      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Requests are recorded before any response byte is written, so a test
that has read the response always finds the request recorded.

=============================================================================
"""

import logging
import threading
import time
from typing import Optional

from ..access_log import RequestLog, log_access, timestamp
from ..config import ServerConfig
from ..core.connection import Connection
from ..http.registry import Outcome, ResourceRegistry, Resolution
from ..http.request import HTTPParseError, HTTPRequest, RequestParser
from ..http.response import HTTPResponse, encode_body, status_only
from ..http.status_codes import HTTPStatus
from ..http.template import render_body
from ..recorder import RequestRecorder


logger = logging.getLogger(__name__)


class RequestHandler:
    """
    Serves one connection against the resource registry.

    Args:
        registry: Resources to resolve requests against.
        recorder: Server-wide recorder; sees every parsed request.
        config: Server configuration.
        stopping: Set by the server when it starts closing. Streams that
            open after that are ended right away.
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        recorder: RequestRecorder,
        config: Optional[ServerConfig] = None,
        stopping: Optional[threading.Event] = None,
    ):
        self.registry = registry
        self.recorder = recorder
        self.config = config or ServerConfig()
        self.stopping = stopping or threading.Event()
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

    def handle(self, conn: Connection) -> None:
        with conn:
            request = self._read(conn)
            if request is None:
                return

            started = time.time()
            self.recorder.record(request)

            resolution = self.registry.resolve(
                request.method, request.path, request.query_params
            )
            if resolution.outcome is Outcome.NOT_FOUND:
                self._reject(conn, request, HTTPStatus.NOT_FOUND, started)
                return
            if resolution.outcome is Outcome.METHOD_NOT_ALLOWED:
                self._reject(conn, request, HTTPStatus.METHOD_NOT_ALLOWED, started,
                             resolution)
                return

            self._serve(conn, request, resolution, started)

    def _read(self, conn: Connection) -> Optional[HTTPRequest]:
        """Read and parse one request; None means drop the connection."""
        try:
            raw_request = conn.read_request()
        except (TimeoutError, ValueError) as e:
            logger.debug(f"[{conn.id}] Read failed: {e}")
            return None

        if raw_request is None:
            logger.debug(f"[{conn.id}] Client closed before sending a request")
            return None

        try:
            return self._parser.parse(raw_request, conn.address)
        except HTTPParseError as e:
            logger.debug(f"[{conn.id}] Unparseable request: {e.message}")
            return None

    def _reject(
        self,
        conn: Connection,
        request: HTTPRequest,
        status: HTTPStatus,
        started: float,
        resolution: Optional[Resolution] = None,
    ) -> None:
        """Answer 404/405 with a bare status line."""
        response = status_only(status)
        conn.send(response.to_bytes())
        resource = resolution.resource.uri if resolution and resolution.resource else "-"
        self._log(conn, request, response, started, resource)

    def _serve(
        self,
        conn: Connection,
        request: HTTPRequest,
        resolution: Resolution,
        started: float,
    ) -> None:
        resource = resolution.resource
        state = resolution.state
        resource.recorder.record(request)

        if isinstance(state.body, str):
            body = encode_body(render_body(state.body, resolution.captures))
        else:
            body = state.body

        response = HTTPResponse(status=state.status, headers=state.header_list, body=body)

        if state.delay:
            time.sleep(state.delay)

        if not state.streaming:
            conn.send(response.to_bytes())
            self._log(conn, request, response, started, resource.uri)
            return

        if not resource.connections.attach(conn, response.to_bytes()):
            logger.debug(f"[{conn.id}] Client gone before stream opened")
            return
        self._log(conn, request, response, started, resource.uri, streaming=True)

        try:
            if self.stopping.is_set():
                conn.shutdown()
            conn.wait_for_disconnect()
        finally:
            resource.connections.detach(conn)

    def _log(
        self,
        conn: Connection,
        request: HTTPRequest,
        response: HTTPResponse,
        started: float,
        resource: str = "-",
        streaming: bool = False,
    ) -> None:
        query = request.target.partition("?")[2]
        log_access(
            RequestLog(
                connection_id=conn.id,
                method=request.method,
                path=request.raw_path,
                query=query,
                client_ip=conn.client_ip,
                user_agent=request.user_agent or "-",
                status_code=int(response.status),
                content_length=len(response.body),
                duration_ms=(time.time() - started) * 1000,
                timestamp=timestamp(),
                resource=resource,
                streaming=streaming,
            ),
            log_format=self.config.log_format,
        )
