"""Tests for the secret printer and its output backends."""

import io
import json

import pytest
import yaml

from vkv.exceptions import InternalError
from vkv.models import Capability, EngineInfo, SecretLeaf
from vkv.printer import OutputFormat, RenderOptions, SecretPrinter
from vkv.printer.export import shell_quote
from vkv.printer.markdown import merge_cells
from vkv.printer.policy import align_columns, collect_capabilities

SECRETS = {"root/": {"secret": {"user": "password", "key": "value"}}}

NESTED = {
    "kv/": {
        "app/": {
            "db": {"user": "admin", "port": 5432},
            "cache": {"host": "redis"},
        },
        "token": {"value": "it's"},
    }
}


def render(secrets, **kwargs):
    return SecretPrinter(RenderOptions(**kwargs)).render(secrets)


class TestTreeFormat:
    """Tests for the default tree output."""

    def test_masked(self):
        assert render(SECRETS) == (
            "root/\n"
            "└── secret\n"
            "    ├── key=*****\n"
            "    └── user=********\n"
        )

    def test_show_values(self):
        assert render(SECRETS, show_values=True).splitlines()[2:] == [
            "    ├── key=value",
            "    └── user=password",
        ]

    def test_max_value_length(self):
        assert "user=***" in render(SECRETS, max_value_length=3)

    def test_only_keys(self):
        assert render(SECRETS, only_keys=True) == (
            "root/\n"
            "└── secret\n"
            "    ├── key\n"
            "    └── user\n"
        )

    def test_only_paths(self):
        assert render(SECRETS, only_paths=True) == "root/\n└── secret\n"

    def test_nested_indentation(self):
        output = render(NESTED, only_keys=True)

        assert output == (
            "kv/\n"
            "├── app/\n"
            "│   ├── cache\n"
            "│   │   └── host\n"
            "│   └── db\n"
            "│       ├── port\n"
            "│       └── user\n"
            "└── token\n"
            "    └── value\n"
        )

    def test_version_and_metadata(self):
        leaves = {"root/secret": SecretLeaf({}, version=2, custom_metadata={"team": "a", "env": "prod"})}
        printer = SecretPrinter(
            RenderOptions(only_paths=True, show_version=True, show_metadata=True),
            leaves=leaves,
        )

        assert printer.render(SECRETS) == "root/\n└── v2: secret [env=prod team=a]\n"

    def test_engine_description_and_type(self):
        engines = {"root": EngineInfo(type="kv", version="2", description="team secrets")}
        printer = SecretPrinter(RenderOptions(only_paths=True), engines=engines)

        assert printer.render(SECRETS) == "root/ [desc=team secrets] [type=kv2]\n└── secret\n"

    def test_engine_type_without_description(self):
        printer = SecretPrinter(
            RenderOptions(only_paths=True), engines={"root": EngineInfo(type="kv", version="1")}
        )

        assert printer.render(SECRETS).splitlines()[0] == "root/ [type=kv1]"

    def test_version_hidden_by_default(self):
        leaves = {"root/secret": SecretLeaf({}, version=2)}

        output = SecretPrinter(RenderOptions(only_paths=True), leaves=leaves).render(SECRETS)

        assert "v2" not in output

    def test_empty(self):
        assert render({}) == ""

    def test_out_writes(self):
        stream = io.StringIO()

        SecretPrinter(RenderOptions(only_paths=True), writer=stream).out(SECRETS)

        assert stream.getvalue() == "root/\n└── secret\n"


class TestSerialFormats:
    def test_json(self):
        output = render(NESTED, format=OutputFormat.JSON)

        assert json.loads(output) == NESTED
        assert output.endswith("}\n")
        assert output.index('"cache"') < output.index('"db"')
        assert "it's" in output

    def test_json_ignores_projections(self):
        output = render(SECRETS, format=OutputFormat.JSON, only_keys=True)

        assert json.loads(output) == SECRETS

    def test_yaml(self):
        output = render(SECRETS, format=OutputFormat.YAML)

        assert yaml.safe_load(output) == SECRETS
        assert output == "root/:\n  secret:\n    key: value\n    user: password\n"


class TestExportFormat:
    """Tests for shell export output."""

    def test_export(self):
        output = render(NESTED, format=OutputFormat.EXPORT)

        assert output == (
            "export host='redis'\n"
            "export port='5432'\n"
            "export user='admin'\n"
            "export value='it'\\''s'\n"
        )

    def test_include_path_and_upper(self):
        output = render(SECRETS, format=OutputFormat.EXPORT, include_path=True, upper=True)

        assert output == (
            "export ROOT_SECRET_KEY='value'\n"
            "export ROOT_SECRET_USER='password'\n"
        )

    def test_duplicate_keys_keep_last_path(self):
        secrets = {"kv/": {"a": {"user": "first"}, "b": {"user": "second"}}}

        assert render(secrets, format=OutputFormat.EXPORT) == "export user='second'\n"

    def test_shell_quote(self):
        assert shell_quote("a'b") == "'a'\\''b'"


class TestMarkdownFormat:
    """Tests for markdown tables."""

    def test_masked_table(self):
        assert render(SECRETS, format=OutputFormat.MARKDOWN) == (
            "|    PATH     | KEY  |  VALUE   |\n"
            "|-------------|------|----------|\n"
            "| root/secret | key  | *****    |\n"
            "|             | user | ******** |\n"
        )

    def test_only_keys(self):
        output = render(SECRETS, format=OutputFormat.MARKDOWN, only_keys=True)

        assert output.splitlines()[0] == "|    PATH     | KEY  |"

    def test_only_paths(self):
        output = render(NESTED, format=OutputFormat.MARKDOWN, only_paths=True)

        assert output.splitlines() == [
            "|     PATH     |",
            "|--------------|",
            "| kv/app/cache |",
            "| kv/app/db    |",
            "| kv/token     |",
        ]

    def test_version_and_metadata_columns(self):
        leaves = {"root/secret": SecretLeaf({}, version=2, custom_metadata={"team": "a", "env": "prod"})}
        printer = SecretPrinter(
            RenderOptions(
                format=OutputFormat.MARKDOWN, show_values=True, show_version=True, show_metadata=True
            ),
            leaves=leaves,
        )

        assert printer.render(SECRETS).splitlines() == [
            "|    PATH     | KEY  |  VALUE   | VERSION |    METADATA     |",
            "|-------------|------|----------|---------|-----------------|",
            "| root/secret | key  | value    | 2       | env=prod team=a |",
            "|             | user | password |         |                 |",
        ]

    def test_merge_cells_left_to_right(self):
        rows = [["a", "x", "1"], ["a", "x", "1"], ["b", "x", "1"], ["b", "y", "1"]]

        assert merge_cells(rows) == [
            ["a", "x", "1"],
            ["", "", ""],
            ["b", "x", "1"],
            ["", "y", "1"],
        ]


class TestPolicyFormat:
    """Tests for the capability matrix."""

    def test_policy(self):
        capabilities = {
            "root/secret": Capability(read=True, list=True),
        }
        printer = SecretPrinter(RenderOptions(format=OutputFormat.POLICY), capabilities=capabilities)

        assert printer.render(SECRETS).splitlines() == [
            "PATH         CREATE  READ  UPDATE  DELETE  LIST  ROOT",
            "root/secret  ✖       ✔     ✖       ✖       ✔     ✖",
        ]

    def test_missing_capability_denies_all(self):
        output = render(SECRETS, format=OutputFormat.POLICY)

        assert output.splitlines()[1].count("✖") == 6

    def test_collect_capabilities(self):
        seen = []

        def lookup(path):
            seen.append(path)
            return Capability(root=True)

        result = collect_capabilities(NESTED, lookup)

        assert seen == ["kv/app/cache", "kv/app/db", "kv/token"]
        assert result["kv/token"].delete is True

    def test_align_columns_min_width(self):
        assert align_columns([["a", "b"], ["c", "d"]]) == "a   b\nc   d\n"


class TestTemplateFormat:
    """Tests for Jinja2 template output."""

    def test_template(self):
        template = (
            "{% for path, data in secrets.items() %}"
            "{% for key, value in data.items() %}{{ path }}:{{ key }}={{ value }}\n{% endfor %}"
            "{% endfor %}"
        )

        output = render(NESTED, format=OutputFormat.TEMPLATE, template_source=template)

        assert output == (
            "kv/app/cache:host=redis\n"
            "kv/app/db:port=5432\n"
            "kv/app/db:user=admin\n"
            "kv/token:value=it's\n"
        )

    def test_values_are_not_masked(self):
        output = render(
            SECRETS,
            format=OutputFormat.TEMPLATE,
            template_source="{{ secrets['root/secret'].user }}",
        )

        assert output == "password\n"

    def test_undefined_is_an_error(self):
        with pytest.raises(InternalError, match="template error"):
            render(SECRETS, format=OutputFormat.TEMPLATE, template_source="{{ missing }}")

    def test_syntax_error(self):
        with pytest.raises(InternalError):
            render(SECRETS, format=OutputFormat.TEMPLATE, template_source="{% for %}")
