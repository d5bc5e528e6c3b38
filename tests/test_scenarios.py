"""End-to-end command scenarios against the in-memory store."""

import io
import json

import pytest

from vkv.cli import main
from vkv.models import Capability


@pytest.fixture
def cli(store, monkeypatch):
    monkeypatch.setattr("vkv.cli.connect_store", lambda: store)
    monkeypatch.setattr("vkv.cli.setup_logging", lambda **kwargs: None)
    monkeypatch.setenv("VKV_LEASE_REFRESHER_ENABLED", "false")
    return store


class TestRoundTrips:
    def test_yaml(self, cli, capsys):
        cli.put("yaml", "secret", {"user": "password"})

        assert main(["export", "-p", "yaml", "-f", "yaml", "--show-values"]) == 0
        assert capsys.readouterr().out == "yaml/:\n  secret:\n    user: password\n"

    def test_json(self, cli, capsys):
        cli.put("json", "admin", {"sub": "password"})

        assert main(["export", "-p", "json", "-f", "json", "--show-values"]) == 0
        assert capsys.readouterr().out == (
            "{\n"
            '  "json/": {\n'
            '    "admin": {\n'
            '      "sub": "password"\n'
            "    }\n"
            "  }\n"
            "}\n"
        )

    def test_export_then_import(self, cli, monkeypatch, capsys):
        cli.put("source", "app/db", {"port": 5432, "tls": True, "note": "it's"})
        assert main(["export", "-p", "source", "-f", "json"]) == 0
        exported = capsys.readouterr().out

        monkeypatch.setattr("sys.stdin", io.StringIO(exported))
        assert main(["import", "-", "-p", "target", "--silent"]) == 0

        assert cli.secrets("target") == {"app/db": {"port": 5432, "tls": True, "note": "it's"}}


class TestEnginePath:
    def test_import_and_export(self, cli, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO('{"admin": {"sub": "password"}}'))
        assert main(["import", "-", "-e", "engine/path", "--silent"]) == 0

        assert main(["export", "-e", "engine/path", "-f", "json", "--show-values"]) == 0
        assert json.loads(capsys.readouterr().out) == {
            "engine/path/": {"admin": {"sub": "password"}}
        }

    def test_path_below_engine_path(self, cli, capsys):
        cli.put("engine/path", "team/admin", {"sub": "password"})

        assert main(["export", "-e", "engine/path", "-p", "team", "-f", "json"]) == 0
        assert json.loads(capsys.readouterr().out) == {
            "engine/path/": {"team/": {"admin": {"sub": "password"}}}
        }


class TestMaskingAndPolicy:
    def test_masking_default(self, cli, capsys):
        cli.put("root", "secret", {"key": "value", "user": "password"})

        assert main(["export", "-p", "root"]) == 0
        assert capsys.readouterr().out == (
            "root/ [type=kv2]\n"
            "└── secret\n"
            "    ├── key=*****\n"
            "    └── user=********\n"
        )

    def test_policy_root_capability(self, cli, capsys):
        cli.put("root", "secret", {"key": "value"})
        cli.capability_map["root/secret"] = Capability.from_names(["root"])

        assert main(["export", "-p", "root", "-f", "policy"]) == 0
        lines = capsys.readouterr().out.splitlines()

        assert lines[0].split() == ["PATH", "CREATE", "READ", "UPDATE", "DELETE", "LIST", "ROOT"]
        assert lines[1].split() == ["root/secret"] + ["✔"] * 6


class TestSnapshotRoundTrip:
    SOURCE = {
        "secret.yaml": {"app/": {"db": {"port": 5432, "user": "admin"}}, "flag": {"on": True}},
        "a/kv.yaml": {"x": {"k": "v"}},
        "a/b/c/deep.yaml": {"d/": {"e": {"k": "it's"}}},
    }

    def test_restore_then_save_is_byte_identical(self, cli, tmp_path):
        source = tmp_path / "source"
        for name, tree in self.SOURCE.items():
            path = source / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(tree, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        destination = tmp_path / "destination"

        assert main(["snapshot", "restore", "-s", str(source)]) == 0
        assert main(["snapshot", "save", "-d", str(destination)]) == 0

        for name in self.SOURCE:
            assert (destination / name).read_bytes() == (source / name).read_bytes()
        assert sorted(p.relative_to(destination).as_posix() for p in destination.rglob("*.yaml")) == sorted(
            self.SOURCE
        )


class TestBoundaries:
    def test_empty_engine(self, cli, capsys):
        cli.add_engine("empty")

        assert main(["export", "-p", "empty", "-f", "json"]) == 0
        assert json.loads(capsys.readouterr().out) == {"empty/": {}}

    def test_mixed_siblings(self, cli, capsys):
        cli.put("kv", "app", {"k": "leaf"})
        cli.put("kv", "app/db", {"k": "child"})

        assert main(["export", "-p", "kv", "--only-paths"]) == 0
        assert capsys.readouterr().out == "kv/ [type=kv2]\n├── app\n└── app/\n    └── db\n"

    def test_skip_errors_keeps_readable_leaves(self, cli, capsys):
        cli.put("kv", "open", {"k": "v"})
        cli.put("kv", "closed", {"k": "v"})
        cli.forbidden.add("kv/closed")

        assert main(["export", "-p", "kv", "-f", "json"]) == 1
        assert main(["export", "-p", "kv", "-f", "json", "--skip-errors"]) == 0

        output = capsys.readouterr().out
        assert json.loads(output) == {"kv/": {"open": {"k": "v"}}}

    def test_key_with_slash_is_rejected(self, cli, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO('{"kv/": {"db": {"a/b": "c"}}}'))

        assert main(["import", "-", "-p", "kv"]) == 1
        assert "may not contain '/'" in capsys.readouterr().err
