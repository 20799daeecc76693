"""
=============================================================================
ACCESS LOG
=============================================================================

One log record per served request on the ``httptestserver.access``
logger, in one of two formats:

    TEXT (Apache style):
    127.0.0.1 - - [19/Oct/2026:10:55:36 +0000] "GET /user/42" 200 14 0.41ms /user/{id}

    JSON:
    {"connection_id": "a1b2c3d4", "method": "GET", "path": "/user/42",
     "client_ip": "127.0.0.1", "status_code": 200, "content_length": 14,
     "duration_ms": 0.41, "resource": "/user/{id}", "streaming": false, ...}

The library never installs handlers. Records go wherever the test run's
logging configuration sends them (pytest captures them per test).

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass, asdict
from typing import Optional


logger = logging.getLogger("httptestserver.access")


@dataclass
class RequestLog:
    """
    Structured access log entry.

    Fields:
        connection_id:  Id of the connection that carried the request
        method:         Request method
        path:           Request path as sent
        query:          Raw query string
        client_ip:      Client's IP address
        user_agent:     User-Agent header, "-" when missing
        status_code:    Status written to the client
        content_length: Body bytes written (initial body for streams)
        duration_ms:    Time from request parsed to response written
        timestamp:      When the response was written
        resource:       URI template of the answering resource, "-" for 404
        streaming:      Whether the connection was kept open
    """

    connection_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str
    resource: str = "-"
    streaming: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        target = f"{self.path}?{self.query}" if self.query else self.path
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {target}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms {self.resource}'
        )


def log_access(
    entry: RequestLog,
    log_format: str = "text",
    level: int = logging.INFO,
) -> None:
    """Emit one access log record in the configured format."""
    if not logger.isEnabledFor(level):
        return
    if log_format == "json":
        logger.log(level, json.dumps(entry.to_dict()))
    else:
        logger.log(level, entry.to_text())


def timestamp(now: Optional[float] = None) -> str:
    """Apache log timestamp, e.g. ``19/Oct/2026:10:55:36 +0000``."""
    return time.strftime("%d/%b/%Y:%H:%M:%S %z", time.localtime(now))
