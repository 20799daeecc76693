"""
=============================================================================
URI PATTERNS
=============================================================================

A Pattern is the compiled form of the URI template a resource is created
with. It decides whether an incoming request path (and query) addresses
the resource, and extracts the values the body template can refer to.

=============================================================================
TEMPLATE SYNTAX
=============================================================================

    /user/{userId}/[0-9]+/.*?filter=*&version=1
     ──┬─ ───┬──── ──┬─── ─┬  ──────────┬──────
       │     │       │     │            │
    Literal Param  Regex  Trailing    Required query keys
                          remainder   (values are ignored)

1. LITERAL: exact, case-sensitive segment match

   Pattern: /users
   Matches: /users
   Doesn't match: /Users, /users/1

2. PARAM ({name}): any non-empty segment, bound to ``name``

   Pattern: /users/{id}
   Matches: /users/42 → path captures {"id": "42"}

3. REGEX: any segment containing one of ``[ ] ( ) * + ^ $ | \``. The
   segment must match the expression in full. A dot alone stays literal,
   so ``/data.json`` only matches ``/data.json``.

   Pattern: /hello/[0-9]/[A-z]
   Matches: /hello/8/b

4. TRAILING REMAINDER: a last regex segment ending in ``.*`` is matched
   against the rest of the path, slashes included.

   Pattern: /files/.*
   Matches: /files/a/b/c.txt

5. QUERY KEYS: every key after ``?`` must be present in the request
   query. Extra request keys are ignored.

   Pattern: /items?filter=*
   Matches: /items?filter=all&x=1 → query captures {"filter": "all"}
   Doesn't match: /items?x=1

=============================================================================
MATCHING ALGORITHM
=============================================================================

    Request /user/42?filter=all against /user/{id}?filter=*

    segments:  ["user", "42"]     pattern: [LITERAL user, PARAM id]
                  │      │                       │          │
                  └──────┼───────── == ──────────┘          │
                         └───────── bind id=42 ─────────────┘

    query:     {"filter": ["all"]} ⊇ {"filter"}  → capture filter=all

Segment counts must be equal unless the pattern ends with a remainder
segment, in which case the request needs at least as many segments.

=============================================================================
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple


# Characters that turn a plain segment into a regex segment. A bare "." is
# literal text, as in "data.json" or "v1.0".
_REGEX_CHARS = frozenset("[]()*+^$|\\")

# {name} as a whole segment
_PARAM_SEGMENT = re.compile(r"^\{([^{}/]+)\}$")


class SegmentKind(Enum):
    """How a single path segment is matched."""
    LITERAL = "literal"
    PARAM = "param"
    REGEX = "regex"


@dataclass(frozen=True)
class Segment:
    """
    One compiled path segment.

    Attributes:
        kind: How the segment is matched.
        value: Literal text, parameter name or regex source.
        regex: Compiled expression (REGEX segments only).
    """

    kind: SegmentKind
    value: str
    regex: Optional["re.Pattern[str]"] = field(default=None, compare=False, repr=False)

    @property
    def is_remainder(self) -> bool:
        """A regex ending in ``.*`` consumes the rest of the path."""
        return self.kind is SegmentKind.REGEX and self.value.endswith(".*")

    def matches(self, value: str) -> bool:
        if self.kind is SegmentKind.LITERAL:
            return value == self.value
        if self.kind is SegmentKind.PARAM:
            return bool(value)
        return self.regex.fullmatch(value) is not None


@dataclass(frozen=True)
class Captures:
    """
    Values extracted by a successful match.

    Example:
        Pattern: /user/{id}?filter=*
        Request: /user/42?filter=all
        Result:  Captures(path={"id": "42"}, query={"filter": "all"})
    """

    path: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Pattern:
    """
    A compiled URI template.

    Patterns are immutable: a resource keeps the pattern it was created
    with for its whole life, so matching never needs a lock.
    """

    uri: str
    segments: Tuple[Segment, ...]
    query_keys: FrozenSet[str] = frozenset()

    @classmethod
    def compile(cls, uri: str) -> "Pattern":
        """
        Compile a URI template.

        Args:
            uri: Template such as ``/user/{id}?filter=*``.

        Returns:
            The compiled Pattern.

        Raises:
            ValueError: If a regex segment is not a valid expression.
        """
        path_part, _, query_part = uri.partition("?")

        segments: List[Segment] = []
        for raw in split_path(path_part):
            param = _PARAM_SEGMENT.match(raw)
            if param:
                segments.append(Segment(SegmentKind.PARAM, param.group(1)))
            elif _REGEX_CHARS.intersection(raw):
                try:
                    compiled = re.compile(raw)
                except re.error as e:
                    raise ValueError(f"Invalid regex segment {raw!r} in {uri!r}: {e}")
                segments.append(Segment(SegmentKind.REGEX, raw, compiled))
            else:
                segments.append(Segment(SegmentKind.LITERAL, raw))

        query_keys = frozenset(
            pair.partition("=")[0]
            for pair in query_part.split("&")
            if pair.partition("=")[0]
        )

        return cls(uri=uri, segments=tuple(segments), query_keys=query_keys)

    def match(
        self,
        path: str,
        query: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> Optional[Captures]:
        """
        Match a decoded request path and its query mapping.

        Args:
            path: Percent-decoded request path, without query string.
            query: Query parameters as name → list of values.

        Returns:
            Captures on success, None if the request doesn't address
            this pattern.
        """
        query = query or {}
        parts = split_path(path)

        if not self._segment_count_fits(len(parts)):
            return None

        path_captures: Dict[str, str] = {}
        last = len(self.segments) - 1
        for i, segment in enumerate(self.segments):
            if i == last and segment.is_remainder:
                value = "/".join(parts[i:])
            else:
                value = parts[i]

            if not segment.matches(value):
                return None
            if segment.kind is SegmentKind.PARAM:
                path_captures[segment.value] = value

        if not self.query_keys.issubset(query.keys()):
            return None

        query_captures = {}
        for key in self.query_keys:
            values = query[key]
            query_captures[key] = values[0] if values else ""

        return Captures(path=path_captures, query=query_captures)

    def _segment_count_fits(self, count: int) -> bool:
        if self.segments and self.segments[-1].is_remainder:
            return count >= len(self.segments) - 1
        return count == len(self.segments)

    def __str__(self) -> str:
        return self.uri


def split_path(path: str) -> List[str]:
    """
    Split a path into segments, ignoring leading and trailing slashes.

        "/user/42/"  → ["user", "42"]
        "/"          → []
    """
    stripped = path.strip("/")
    return stripped.split("/") if stripped else []
