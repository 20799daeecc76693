"""
=============================================================================
BODY TEMPLATES
=============================================================================

Substitutes captured path and query values into a resource body.

    Pattern:   /user/{userId}?filter=*
    Body:      {"id": "{path.userId}", "filter": "{query.filter}"}
    Request:   GET /user/abc123?filter=all
    Rendered:  {"id": "abc123", "filter": "all"}

Tokens naming a value that was not captured are left in place:

    Body:      Hello {path.name}
    Captures:  {}
    Rendered:  Hello {path.name}

Substitution is a single pass over the template, so a captured value
that itself looks like a token is never expanded again.

=============================================================================
"""

import re

from .pattern import Captures


TOKEN_PATTERN = re.compile(r"\{(path|query)\.([^{}]+)\}")


def render_body(template: str, captures: Captures) -> str:
    """
    Render a body template against the captures of one request.

    Pure function: safe to call from many handler threads at once.

    Args:
        template: Body template (may be empty).
        captures: Values extracted by Pattern.match().

    Returns:
        The body with every resolvable token replaced.
    """
    if not template or "{" not in template:
        return template

    def substitute(match: "re.Match[str]") -> str:
        source = captures.path if match.group(1) == "path" else captures.query
        return source.get(match.group(2), match.group(0))

    return TOKEN_PATTERN.sub(substitute, template)
