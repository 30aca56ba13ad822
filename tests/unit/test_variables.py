"""Tests for the {{name}} placeholder resolver."""

from __future__ import annotations

import random
import re
import uuid

import pytest

from loadsurge.engine.variables import VariableResolver, has_placeholders


@pytest.fixture
def resolver() -> VariableResolver:
    return VariableResolver({"tenant": "acme", "uuid": "fixed"}, rng=random.Random(7))


class TestHasPlaceholders:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("/users/{{uuid}}", True),
            ("{{ spaced }}", True),
            ("/users/42", False),
            ("{single}", False),
            ("", False),
            (None, False),
        ],
    )
    def test_detection(self, text: str | None, expected: bool) -> None:
        assert has_placeholders(text) is expected


class TestVariableResolver:
    def test_static_variable(self, resolver: VariableResolver) -> None:
        assert resolver.resolve("/orgs/{{tenant}}/users") == "/orgs/acme/users"

    def test_static_variable_shadows_generator(self, resolver: VariableResolver) -> None:
        assert resolver.resolve("{{uuid}}") == "fixed"

    def test_whitespace_inside_braces(self, resolver: VariableResolver) -> None:
        assert resolver.resolve("{{ tenant }}") == "acme"

    def test_unknown_placeholder_left_as_is(self, resolver: VariableResolver) -> None:
        assert resolver.resolve("a={{nope}}&b={{tenant}}") == "a={{nope}}&b=acme"

    def test_text_without_placeholders_unchanged(self, resolver: VariableResolver) -> None:
        assert resolver.resolve('{"id": 1}') == '{"id": 1}'

    def test_fresh_value_per_placeholder(self) -> None:
        resolver = VariableResolver()
        first, second = resolver.resolve("{{uuid}} {{uuid}}").split()
        assert first != second
        assert uuid.UUID(first).version == 4

    @pytest.mark.parametrize(
        ("name", "pattern"),
        [
            ("uuid_short", r"[0-9a-f]{32}"),
            ("timestamp", r"\d{10,}"),
            ("timestamp_ms", r"\d{13,}"),
            ("date", r"\d{4}-\d{2}-\d{2}"),
            ("time", r"\d{2}:\d{2}:\d{2}"),
            ("random_int", r"\d{1,6}"),
            ("random_float", r"\d{1,3}\.\d{2}"),
            ("random_bool", r"true|false"),
            ("random_string", r"[A-Za-z0-9]{10}"),
            ("random_email", r"[a-z0-9]{10}@[a-z.]+"),
            ("random_phone", r"\+1\d{10}"),
            ("username", r"[a-z]+\.[a-z]+\d{1,4}"),
            ("zipcode", r"\d{5}"),
            ("domain", r"[a-z]+\.(com|org|net|io)"),
        ],
    )
    def test_generator_formats(self, name: str, pattern: str) -> None:
        value = VariableResolver(rng=random.Random(1)).generate(name)
        assert re.fullmatch(pattern, value), value

    def test_seeded_rng_is_reproducible(self) -> None:
        template = "{{full_name}} {{city}} {{priority}}"
        first = VariableResolver(rng=random.Random(3)).resolve(template)
        second = VariableResolver(rng=random.Random(3)).resolve(template)
        assert first == second

    def test_register_custom_generator(self, resolver: VariableResolver) -> None:
        resolver.register("region", lambda: "eu-west-1")
        assert resolver.resolve("{{region}}") == "eu-west-1"
        assert "region" in resolver.names()

    def test_generate_unknown_name(self, resolver: VariableResolver) -> None:
        with pytest.raises(KeyError):
            resolver.generate("nope")

    def test_resolve_mapping_keeps_keys(self, resolver: VariableResolver) -> None:
        resolved = resolver.resolve_mapping({"X-{{tenant}}": "{{tenant}}"})
        assert resolved == {"X-{{tenant}}": "acme"}

    def test_names_include_builtins_and_variables(self, resolver: VariableResolver) -> None:
        names = resolver.names()
        assert {"uuid", "timestamp", "tenant", "category"} <= set(names)
        assert names == sorted(names)
