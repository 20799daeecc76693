"""
=============================================================================
COMMAND-LINE ENTRY POINT
=============================================================================

Runs a TestServer outside a test process, e.g. as a stand-in backend
while developing a client by hand, or as a sidecar for tests written in
another language.

=============================================================================
USAGE
=============================================================================

    python -m httptestserver --port 8089 --resources mocks.json
    HTTP_TEST_PORT=8089 python -m httptestserver -r mocks.json -l INFO

mocks.json is a list of resources, matched in file order:

    [
        {"uri": "/user/{id}",
         "methods": ["GET", "PUT"],
         "status": 200,
         "headers": {"Content-Type": "application/json"},
         "body": "{\\"id\\": \\"{path.id}\\"}"},

        {"uri": "/events", "stream": true, "body": "ready\\n"},

        {"uri": "/slow", "delay": 2.5}
    ]

"headers" may also be a list of [name, value] pairs, to repeat a name.

The server runs until SIGINT (Ctrl+C) or SIGTERM, then closes cleanly.

=============================================================================
"""

import argparse
import json
import logging
import signal
import sys
import threading
from typing import Any, Iterable, List, Optional

from . import __version__
from .config import ServerConfig, LOG_FORMATS
from .core import BindError
from .resource import Resource
from .server import TestServer


logger = logging.getLogger("httptestserver")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m httptestserver",
        description="Serve mock HTTP resources described in a JSON file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httptestserver -p 8089 -r mocks.json    # Serve mocks on :8089
  python -m httptestserver -r mocks.json -l INFO    # With access log
  python -m httptestserver --log-format json        # JSON access log
        """
    )
    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 0, any free port)"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Maximum worker threads, i.e. concurrent connections (default: 64)"
    )
    parser.add_argument(
        "--resources", "-r",
        type=str,
        default=None,
        help="JSON file listing the resources to serve"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: WARNING)"
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Access log format (default: text)"
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"httptestserver {__version__}"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment defaults, overridden by whatever was given on the command line."""
    config = ServerConfig.from_env()
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.max_workers = args.workers
        config.min_workers = min(config.min_workers, args.workers)
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format
    return config


def _header_pairs(headers: Any) -> Iterable:
    if isinstance(headers, dict):
        return headers.items()
    return [tuple(pair) for pair in headers]


def apply_definition(resource: Resource, definition: dict) -> Resource:
    """
    Configure a resource from one entry of the resources file.

    Raises:
        ValueError: On an unknown key or a malformed value.
    """
    unknown = set(definition) - {"uri", "methods", "status", "headers", "body", "stream", "delay"}
    if unknown:
        raise ValueError(f"Unknown resource keys for {resource.uri}: {sorted(unknown)}")

    if "methods" in definition:
        methods = definition["methods"]
        resource.method(*([methods] if isinstance(methods, str) else methods))
    if "status" in definition:
        resource.status(int(definition["status"]))
    for name, value in _header_pairs(definition.get("headers", {})):
        resource.header(name, value)
    if "body" in definition:
        resource.body(definition["body"])
    if definition.get("stream"):
        resource.stream()
    if definition.get("delay") is not None:
        resource.delay(float(definition["delay"]))
    return resource


def load_resources(server: TestServer, path: str) -> List[Resource]:
    """
    Create the resources listed in a JSON file on a server.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If it isn't a list of resource objects.
    """
    with open(path, "r", encoding="utf-8") as f:
        definitions = json.load(f)

    if not isinstance(definitions, list):
        raise ValueError(f"{path}: expected a JSON list of resources")

    resources = []
    for index, definition in enumerate(definitions):
        if not isinstance(definition, dict) or "uri" not in definition:
            raise ValueError(f"{path}: entry {index} needs a \"uri\"")
        resource = server.create_resource(definition["uri"])
        resources.append(apply_definition(resource, definition))
    return resources


def _setup_logging(config: ServerConfig):
    level = getattr(logging, config.log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("httptestserver").setLevel(level)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    try:
        config.validate()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    _setup_logging(config)

    try:
        server = TestServer(config)
    except BindError as e:
        print(f"Cannot start server: {e}", file=sys.stderr)
        return 1

    stop = threading.Event()

    def shutdown_handler(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down...")
        stop.set()

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    try:
        if args.resources:
            try:
                resources = load_resources(server, args.resources)
            except (OSError, ValueError) as e:
                print(f"Cannot load resources: {e}", file=sys.stderr)
                return 2
        else:
            resources = []

        print(f"Serving {len(resources)} resource(s) at {server.url}")
        for resource in resources:
            print(f"  {' '.join(sorted(resource.snapshot().methods)):<12} {resource.uri}")
        print("Press Ctrl+C to stop")
        sys.stdout.flush()

        # Short waits keep the main thread responsive to signals
        while not stop.wait(0.5):
            pass
    finally:
        server.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
