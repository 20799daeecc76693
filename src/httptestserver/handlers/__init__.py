"""Connection handlers run by the server's thread pool."""

from .resource_handler import RequestHandler

__all__ = ["RequestHandler"]
