"""Recursive traversal of KV engines, namespaces and engine lists."""

from typing import Dict, List, Optional

from .client import StoreClient
from .exceptions import SKIPPABLE_ERRORS, NotFoundError
from .logging import get_logger
from .models import EngineMap, NamespaceMap, SecretLeaf, Tree, WalkResult
from .projection import join_path, nest_under, sort_key, split_segments

logger = get_logger(__name__)


class Walker:
    """Collects secret trees from a store.

    Every leaf read is recorded in :attr:`leaves`, keyed by its canonical
    path (``engine/sub/path``), so printers can show versions and custom
    metadata without going back to the store.
    """

    def __init__(
        self,
        client: StoreClient,
        namespace: str = "",
        skip_errors: bool = False,
    ):
        self.client = client
        self.namespace = namespace.strip("/")
        self.skip_errors = skip_errors
        self.leaves: Dict[str, SecretLeaf] = {}

    def walk_subtree(self, engine: str, sub_path: str = "") -> Tree:
        """Return every leaf below ``engine/sub_path`` as a tree."""
        return self.walk_path(engine, sub_path).tree

    def walk_path(self, engine: str, sub_path: str = "") -> WalkResult:
        """Walk ``engine/sub_path``.

        A path that cannot be listed is read as a leaf and returned as a
        single-entry tree. Children that cannot be listed or read are
        omitted when ``skip_errors`` is set.

        Args:
            engine: Engine mount path
            sub_path: Path below the engine, "" for the whole engine

        Returns:
            WalkResult with the tree and whether the path was a leaf

        Raises:
            NotFoundError: If the engine does not exist or the path is
                neither a directory nor a leaf
            ForbiddenError: If access is denied and skip_errors is off
        """
        engine = engine.strip("/")
        sub_path = sub_path.strip("/")
        try:
            return self._walk(engine, sub_path)
        except SKIPPABLE_ERRORS as e:
            if not sub_path and isinstance(e, NotFoundError):
                # Raises when the engine itself is missing; otherwise it is empty.
                self.client.engine_type_version(engine, namespace=self.namespace)
                return WalkResult(tree={})
            if self.skip_errors:
                logger.warning(
                    f"skipping {join_path(engine, sub_path)!r}: {e}",
                    extra={"engine": engine, "path": sub_path},
                )
                return WalkResult(tree={})
            raise type(e)(
                f"{e}. Use --skip-errors to skip paths that cannot be read",
                details=e.details,
            ) from e

    def _walk(self, engine: str, sub_path: str) -> WalkResult:
        try:
            keys = self.client.list_keys(engine, sub_path, namespace=self.namespace)
        except SKIPPABLE_ERRORS:
            if not sub_path:
                raise
            leaf = self._read(engine, sub_path)
            return WalkResult(tree={split_segments(sub_path)[-1]: dict(leaf.data)}, is_leaf=True)

        tree: Tree = {}
        for key in sorted(keys, key=sort_key):
            child = join_path(sub_path, key)
            try:
                if key.endswith("/"):
                    tree[key] = self._walk(engine, child).tree
                else:
                    tree[key] = dict(self._read(engine, child).data)
            except SKIPPABLE_ERRORS as e:
                if not self.skip_errors:
                    raise
                logger.warning(
                    f"skipping {join_path(engine, child)!r}: {e}",
                    extra={"engine": engine, "path": child},
                )
        return WalkResult(tree=tree)

    def _read(self, engine: str, sub_path: str) -> SecretLeaf:
        leaf = self.client.read_secret(engine, sub_path, namespace=self.namespace)
        self.leaves[join_path(engine, sub_path)] = leaf
        return leaf

    def walk_namespaces(self, root: Optional[str] = None) -> NamespaceMap:
        """Map every namespace reachable from ``root`` to its sorted children.

        The root itself is always present, with an empty list when it has
        no children.
        """
        root = (self.namespace if root is None else root).strip("/")
        result: NamespaceMap = {}
        pending: List[str] = [root]
        while pending:
            current = pending.pop()
            try:
                children = self.client.list_namespaces(current)
            except SKIPPABLE_ERRORS as e:
                if not self.skip_errors:
                    raise
                logger.warning(f"skipping namespace {current!r}: {e}", extra={"namespace": current})
                children = []
            result[current] = children
            pending.extend(join_path(current, child) for child in children)
        return {ns: result[ns] for ns in sorted(result, key=sort_key)}

    def walk_engines(self, root: Optional[str] = None) -> EngineMap:
        """Map every namespace reachable from ``root`` to its sorted KV engines."""
        engines: EngineMap = {}
        for ns in self.walk_namespaces(root):
            try:
                engines[ns] = self.client.list_engines(ns)
            except SKIPPABLE_ERRORS as e:
                if not self.skip_errors:
                    raise
                logger.warning(f"skipping engines of {ns!r}: {e}", extra={"namespace": ns})
                engines[ns] = []
        return engines


def secret_map(engine: str, sub_path: str, result: WalkResult) -> Tree:
    """Wrap a walked tree in its engine and directory levels.

    ``secret_map("kv", "app/db", result)`` yields
    ``{"kv/": {"app/": {"db": {...}}}}`` when ``app/db`` is a leaf and
    ``{"kv/": {"app/": {"db/": {...}}}}`` when it is a directory.
    """
    segments = split_segments(sub_path)
    if result.is_leaf:
        segments = segments[:-1]
    return nest_under([engine.strip("/")] + segments, result.tree)
