"""Tests for the engine and namespace list printers."""

import io
import json

import pytest

from vkv.exceptions import BadOptionComboError, BadPatternError, NotFoundError
from vkv.printer import EnginePrinter, NamespacePrinter, parse_list_format

ENGINES = {"": ["secret/", "kv/"], "team": ["db/"], "team/sub": []}
NAMESPACES = {"": ["team", "ops"], "ops": [], "team": ["sub"], "team/sub": []}


class TestParseListFormat:
    def test_aliases(self):
        assert parse_list_format("yml") == "yaml"
        assert parse_list_format(None) == "base"

    def test_invalid(self):
        with pytest.raises(BadOptionComboError, match="invalid format 'markdown'"):
            parse_list_format("markdown")


class TestEnginePrinter:
    """Tests for EnginePrinter."""

    def test_base(self):
        stream = io.StringIO()

        EnginePrinter(writer=stream).out(ENGINES)

        assert stream.getvalue() == "db/\nkv/\nsecret/\n"

    def test_namespace_prefix(self):
        stream = io.StringIO()

        EnginePrinter(include_ns_prefix=True, writer=stream).out(ENGINES)

        assert stream.getvalue() == "kv\nsecret\nteam/db\n"

    def test_regex(self):
        stream = io.StringIO()

        EnginePrinter(regex="^s", writer=stream).out(ENGINES)

        assert stream.getvalue() == "secret/\n"

    def test_json(self):
        stream = io.StringIO()

        EnginePrinter(fmt="json", writer=stream).out({"": ["secret/", "kv/"]})

        assert json.loads(stream.getvalue()) == {"engines": ["kv/", "secret/"]}

    def test_yaml(self):
        stream = io.StringIO()

        EnginePrinter(fmt="yaml", writer=stream).out({"": ["kv/"]})

        assert stream.getvalue() == "engines:\n- kv/\n"

    def test_no_engines(self):
        with pytest.raises(NotFoundError, match="no engines found"):
            EnginePrinter(writer=io.StringIO()).out({"": []})

    def test_invalid_regex(self):
        with pytest.raises(BadPatternError):
            EnginePrinter(regex="[", writer=io.StringIO()).out(ENGINES)


class TestNamespacePrinter:
    """Tests for NamespacePrinter."""

    def test_base(self):
        stream = io.StringIO()

        NamespacePrinter(writer=stream).out(NAMESPACES)

        assert stream.getvalue() == "ops\nteam\nteam/sub\n"

    def test_regex(self):
        stream = io.StringIO()

        NamespacePrinter(regex="sub", writer=stream).out(NAMESPACES)

        assert stream.getvalue() == "team/sub\n"

    def test_json(self):
        stream = io.StringIO()

        NamespacePrinter(fmt="json", writer=stream).out({"": ["b", "a"]})

        assert json.loads(stream.getvalue()) == {"namespaces": ["a", "b"]}

    def test_root_without_children(self):
        stream = io.StringIO()

        NamespacePrinter(writer=stream).out({"": []})

        assert stream.getvalue() == ""

    def test_empty_map(self):
        with pytest.raises(NotFoundError, match="no namespaces found"):
            NamespacePrinter(writer=io.StringIO()).out({})
