"""Pytest configuration and shared fixtures."""

from typing import Any, Dict, List, Optional, Set, Tuple
from unittest.mock import MagicMock

import pytest

from vkv.exceptions import ConflictError, ForbiddenError, NotFoundError
from vkv.models import Capability, EngineInfo, SecretLeaf
from vkv.projection import join_path


class FakeStore:
    """In-memory stand-in for ``StoreClient``.

    Engines hold flat ``{sub/path: SecretLeaf}`` maps; directories are
    derived from the paths the same way the KV list endpoint does.
    """

    def __init__(self, address: str = "http://vault.local:8200"):
        self.address = address
        self.namespace = ""
        self.namespaces: Dict[str, List[str]] = {"": []}
        self.engines: Dict[str, Dict[str, Dict[str, Any]]] = {"": {}}
        self.forbidden: Set[str] = set()
        self.capability_map: Dict[str, Capability] = {}
        self.token = {"ttl": 3600, "creation_ttl": 3600}
        self.renewals: List[int] = []
        self.writes: List[Tuple[str, str, str]] = []

    # setup helpers

    def add_namespace(self, path: str) -> None:
        parent, _, name = path.rpartition("/")
        self.create_namespace(parent, name, idempotent=True)

    def add_engine(
        self, name: str, namespace: str = "", kv_type: str = "kv", version: str = "2", description: str = ""
    ) -> None:
        self.engines[namespace][name.strip("/")] = {
            "type": kv_type,
            "version": version,
            "description": description,
            "secrets": {},
        }

    def put(
        self,
        engine: str,
        path: str,
        data: Dict[str, Any],
        namespace: str = "",
        version: int = 1,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        if engine not in self.engines[namespace]:
            self.add_engine(engine, namespace)
        self.engines[namespace][engine]["secrets"][path] = SecretLeaf(
            data=dict(data), version=version, custom_metadata=dict(metadata or {})
        )

    def secrets(self, engine: str, namespace: str = "") -> Dict[str, Dict[str, Any]]:
        return {
            path: leaf.data
            for path, leaf in self.engines[namespace][engine]["secrets"].items()
        }

    # StoreClient interface

    def _engine(self, engine: str, namespace: Optional[str]) -> Dict[str, Any]:
        mounts = self.engines.get(namespace or "")
        if mounts is None or engine.strip("/") not in mounts:
            raise NotFoundError(f"engine {engine!r} not found")
        return mounts[engine.strip("/")]

    def _check_access(self, namespace: Optional[str], path: str) -> None:
        if (namespace + "/" if namespace else "") + path in self.forbidden:
            raise ForbiddenError(f"read {path!r}: permission denied")

    def engine_type_version(self, engine: str, namespace: Optional[str] = None) -> Tuple[str, str]:
        mount = self._engine(engine, namespace)
        return mount["type"], mount["version"]

    def engine_info(self, engine: str, namespace: Optional[str] = None) -> EngineInfo:
        mount = self._engine(engine, namespace)
        return EngineInfo(mount["type"], mount["version"], mount.get("description", ""))

    def list_keys(self, engine: str, sub_path: str = "", namespace: Optional[str] = None) -> List[str]:
        self._check_access(namespace, join_path(engine, sub_path) + "/")
        mount = self._engine(engine, namespace)
        prefix = sub_path.strip("/") + "/" if sub_path.strip("/") else ""
        children = set()
        for path in mount["secrets"]:
            if path.startswith(prefix):
                head, sep, _ = path[len(prefix):].partition("/")
                children.add(head + "/" if sep else head)
        if not children:
            raise NotFoundError(f"list {join_path(engine, sub_path)!r}: not found")
        return sorted(children)

    def read_secret(self, engine: str, sub_path: str, namespace: Optional[str] = None) -> SecretLeaf:
        self._check_access(namespace, join_path(engine, sub_path))
        mount = self._engine(engine, namespace)
        leaf = mount["secrets"].get(sub_path.strip("/"))
        if leaf is None:
            raise NotFoundError(f"read {join_path(engine, sub_path)!r}: not found")
        return SecretLeaf(dict(leaf.data), leaf.version, dict(leaf.custom_metadata))

    def write_secret(
        self, engine: str, sub_path: str, data: Dict[str, Any], namespace: Optional[str] = None
    ) -> Optional[int]:
        mount = self._engine(engine, namespace)
        previous = mount["secrets"].get(sub_path)
        version = (previous.version or 0) + 1 if previous else 1
        mount["secrets"][sub_path] = SecretLeaf(dict(data), version)
        self.writes.append((namespace or "", engine, sub_path))
        return version

    def list_engines(self, namespace: Optional[str] = None) -> List[str]:
        mounts = self.engines.get(namespace or "")
        if mounts is None:
            raise NotFoundError(f"namespace {namespace!r} not found")
        return sorted(name + "/" for name in mounts)

    def list_namespaces(self, namespace: Optional[str] = None) -> List[str]:
        return sorted(self.namespaces.get(namespace or "", []))

    def create_namespace(self, parent: str, name: str, idempotent: bool = False) -> bool:
        full = join_path(parent, name)
        if full in self.namespaces:
            if not idempotent:
                raise ConflictError(f"namespace {full!r} already exists")
            return False
        self.namespaces[full] = []
        self.namespaces.setdefault(parent, []).append(name)
        self.engines[full] = {}
        return True

    def enable_engine(self, name: str, idempotent: bool = False, namespace: Optional[str] = None) -> bool:
        mounts = self.engines[namespace or ""]
        mount = mounts.get(name.strip("/"))
        if mount is not None:
            if mount["type"] != "kv" or mount["version"] != "2":
                raise ConflictError(f"a secret engine under {name!r} is not of type kv2")
            if not idempotent:
                raise ConflictError(
                    f'a secret engine under "{name}" is already enabled. Use --force for overwriting'
                )
            return False
        self.add_engine(name, namespace or "")
        return True

    def capabilities(self, path: str, namespace: Optional[str] = None) -> Capability:
        return self.capability_map.get(path, Capability(read=True, list=True))

    def lookup_token(self) -> Dict[str, Any]:
        return dict(self.token)

    def renew_token(self, increment: int) -> None:
        self.renewals.append(increment)


@pytest.fixture
def store():
    """An empty in-memory store."""
    return FakeStore()


@pytest.fixture
def make_store():
    """Factory for additional in-memory stores, e.g. a restore target."""
    return FakeStore


@pytest.fixture
def hvac_client():
    """A MagicMock standing in for ``hvac.Client`` with a root namespace."""
    client = MagicMock()
    client.adapter.namespace = None
    client.is_authenticated.return_value = True
    client.read.return_value = {"data": {"type": "kv", "options": {"version": "2"}}}
    return client
