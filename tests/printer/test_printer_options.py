"""Tests for output formats and render option resolution."""

import pytest

from vkv.exceptions import BadOptionComboError
from vkv.printer import OutputFormat, RenderOptions, parse_format


class TestParseFormat:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, OutputFormat.BASE),
            ("base", OutputFormat.BASE),
            ("YAML", OutputFormat.YAML),
            ("yml", OutputFormat.YAML),
            ("tmpl", OutputFormat.TEMPLATE),
            ("policy", OutputFormat.POLICY),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_format(value) == expected

    def test_invalid(self):
        with pytest.raises(BadOptionComboError, match=r"invalid format 'xml' \(valid options: base, yaml"):
            parse_format("xml")


class TestResolve:
    """Tests for RenderOptions.resolve."""

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"only_keys": True, "show_values": True}, "--only-keys and --show-values"),
            ({"only_paths": True, "show_values": True}, "--only-paths and --show-values"),
            ({"only_keys": True, "only_paths": True}, "--only-keys and --only-paths"),
        ],
    )
    def test_conflicting_projections(self, kwargs, message):
        with pytest.raises(BadOptionComboError, match=message):
            RenderOptions(**kwargs).resolve()

    @pytest.mark.parametrize(
        "fmt",
        [OutputFormat.YAML, OutputFormat.JSON, OutputFormat.EXPORT],
    )
    def test_full_value_formats(self, fmt):
        resolved = RenderOptions(format=fmt, only_keys=True, max_value_length=3).resolve()

        assert resolved.show_values is True
        assert resolved.only_keys is False
        assert resolved.only_paths is False
        assert resolved.max_value_length == -1

    def test_template_requires_source(self):
        with pytest.raises(BadOptionComboError, match="--template-file or --template-string"):
            RenderOptions(format=OutputFormat.TEMPLATE).resolve()

    def test_template_with_source(self):
        resolved = RenderOptions(format=OutputFormat.TEMPLATE, template_source="x").resolve()

        assert resolved.show_values is True

    def test_policy_shows_values(self):
        resolved = RenderOptions(format=OutputFormat.POLICY, only_paths=True).resolve()

        assert resolved.show_values is True
        assert resolved.only_paths is False

    def test_base_and_markdown_untouched(self):
        for fmt in (OutputFormat.BASE, OutputFormat.MARKDOWN):
            resolved = RenderOptions(format=fmt, only_keys=True).resolve()

            assert resolved.only_keys is True
            assert resolved.show_values is False
            assert resolved.max_value_length == 12

    def test_resolve_returns_copy(self):
        options = RenderOptions(format=OutputFormat.JSON)

        options.resolve()

        assert options.show_values is False
