"""
Unit tests for resource resolution.
"""

from httptestserver.http.registry import Outcome, ResourceRegistry
from httptestserver.resource import Resource


def make_registry(*resources: Resource) -> ResourceRegistry:
    registry = ResourceRegistry()
    for resource in resources:
        registry.add(resource)
    return registry


class TestResolve:
    """Tests for ResourceRegistry.resolve()."""

    def test_resolved(self):
        user = Resource("/user/{id}")
        registry = make_registry(user)

        resolution = registry.resolve("GET", "/user/42")

        assert resolution.outcome is Outcome.RESOLVED
        assert resolution.resolved
        assert resolution.resource is user
        assert resolution.captures.path == {"id": "42"}
        assert resolution.state.status == 200

    def test_not_found(self):
        registry = make_registry(Resource("/user/{id}"))

        resolution = registry.resolve("GET", "/other")

        assert resolution.outcome is Outcome.NOT_FOUND
        assert resolution.resource is None

    def test_empty_registry(self):
        assert ResourceRegistry().resolve("GET", "/").outcome is Outcome.NOT_FOUND

    def test_method_not_allowed(self):
        registry = make_registry(Resource("/user/{id}"))

        resolution = registry.resolve("POST", "/user/42")

        assert resolution.outcome is Outcome.METHOD_NOT_ALLOWED
        assert resolution.captures is None

    def test_method_case_insensitive(self):
        registry = make_registry(Resource("/x").method("post"))

        assert registry.resolve("POST", "/x").resolved
        assert registry.resolve("post", "/x").resolved

    def test_first_match_wins(self):
        first = Resource("/user/{id}")
        second = Resource("/user/.*")
        registry = make_registry(first, second)

        assert registry.resolve("GET", "/user/1").resource is first

    def test_first_path_match_decides_method(self):
        """A later resource allowing the method is never consulted."""
        get_only = Resource("/user/{id}")
        post_too = Resource("/user/.*").method("POST")
        registry = make_registry(get_only, post_too)

        resolution = registry.resolve("POST", "/user/1")

        assert resolution.outcome is Outcome.METHOD_NOT_ALLOWED
        assert resolution.resource is get_only

    def test_query_keys_select_resource(self):
        filtered = Resource("/items?filter=*")
        plain = Resource("/items")
        registry = make_registry(filtered, plain)

        assert registry.resolve("GET", "/items", {"filter": ["a"]}).resource is filtered
        assert registry.resolve("GET", "/items", {}).resource is plain


class TestRegistry:
    """Tests for registry bookkeeping."""

    def test_insertion_order(self):
        a, b = Resource("/a"), Resource("/b")
        registry = make_registry(a, b)

        assert registry.resources == [a, b]
        assert len(registry) == 2

    def test_resources_is_copy(self):
        registry = make_registry(Resource("/a"))

        registry.resources.clear()

        assert len(registry) == 1
