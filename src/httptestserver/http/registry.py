"""
=============================================================================
RESOURCE RESOLUTION
=============================================================================

Maps an incoming request to the resource that should answer it.

Resources are kept in the order they were created and the first one
whose pattern matches the path wins. Its method set then decides
between serving the request and answering 405:

    resolve("POST", "/user/42", {})

    ┌──────────────────────────┬──────────┐
    │ /user/{id}     [GET]     │ ◄── first path match, POST not allowed
    │ /user/.*       [POST]    │     never consulted
    └──────────────────────────┴──────────┘
                     │
                     ▼
          Outcome.METHOD_NOT_ALLOWED  (405)

A resource registered later never shadows an earlier one, even when its
method set would fit. Register the more specific resource first.

=============================================================================
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, List, Mapping, Optional, Sequence

from .methods import normalize_method
from .pattern import Captures

if TYPE_CHECKING:
    from ..resource import Resource, ResourceState


class Outcome(Enum):
    """Result of resolving one request."""
    RESOLVED = "resolved"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Resolution:
    """
    What resolve() found.

    Attributes:
        outcome: Which of the three outcomes applies.
        resource: The first path-matching resource (None for NOT_FOUND).
        captures: Values captured from path and query (RESOLVED only).
        state: The resource configuration the decision was made with;
            the response must be built from this same snapshot.
    """

    outcome: Outcome
    resource: Optional["Resource"] = None
    captures: Optional[Captures] = None
    state: Optional["ResourceState"] = None

    @property
    def resolved(self) -> bool:
        return self.outcome is Outcome.RESOLVED


class ResourceRegistry:
    """Ordered, thread-safe collection of resources."""

    def __init__(self):
        self._lock = threading.Lock()
        self._resources: List["Resource"] = []

    def add(self, resource: "Resource") -> "Resource":
        """Append a resource. Earlier resources take precedence."""
        with self._lock:
            self._resources.append(resource)
        return resource

    @property
    def resources(self) -> List["Resource"]:
        """Copy of the resources in registration order."""
        with self._lock:
            return list(self._resources)

    def __len__(self) -> int:
        with self._lock:
            return len(self._resources)

    def resolve(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> Resolution:
        """
        Find the resource for a request.

        Args:
            method: Request method.
            path: Percent-decoded request path.
            query: Query parameters as name → list of values.

        Returns:
            The Resolution. Never raises for an unknown path or method.
        """
        method = normalize_method(method)

        for resource in self.resources:
            captures = resource.pattern.match(path, query)
            if captures is None:
                continue
            state = resource.snapshot()
            if state.allows(method):
                return Resolution(Outcome.RESOLVED, resource, captures, state)
            return Resolution(Outcome.METHOD_NOT_ALLOWED, resource, state=state)

        return Resolution(Outcome.NOT_FOUND)
