"""HTTP methods a resource can answer."""

from enum import Enum
from typing import Union


class Method(str, Enum):
    """
    HTTP request methods.

    A ``str`` subclass, so ``Method.POST == "POST"`` and members can be
    compared directly against the method of a parsed request.
    """

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    def __str__(self) -> str:
        return self.value


def normalize_method(method: Union[str, Method]) -> str:
    """Return the upper-case method token for a Method or a plain string."""
    if isinstance(method, Method):
        return method.value
    return str(method).strip().upper()
