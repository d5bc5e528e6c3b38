"""Pure transformations over secret trees.

A tree is a nested dict: directory keys end with ``/`` and map to subtrees,
leaf keys map to a dict of scalar values. None of the functions below mutate
their inputs.
"""

import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Pattern, Tuple

from .exceptions import BadInputError, BadPatternError
from .models import Tree

SCALAR_TYPES = (str, int, float, bool, type(None))


def sort_key(name: str) -> str:
    """Ordering key that sorts a parent before its children.

    "/" is replaced by NUL so that ``a < a/b < a/b/c < a2``.
    """
    return name.replace("/", "\x00")


def sorted_keys(mapping: Dict[str, Any]) -> List[str]:
    return sorted(mapping, key=sort_key)


def sort_tree(tree: Any) -> Any:
    """Return a copy of ``tree`` with every dict rebuilt in NUL order."""
    if not isinstance(tree, dict):
        return tree
    return {key: sort_tree(tree[key]) for key in sorted_keys(tree)}


def is_leaf(key: str, value: Any) -> bool:
    """Whether ``value`` stored under ``key`` is a secret leaf."""
    if not isinstance(value, dict) or key.endswith("/"):
        return False
    return not any(isinstance(v, dict) for v in value.values())


def stringify(value: Any) -> str:
    """Render a scalar the way it is shown to operators."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def split_path(path: str) -> Tuple[str, str]:
    """Split ``engine/sub/path`` into ``("engine", "sub/path")``."""
    parts = path.strip("/").split("/", 1)
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1].strip("/")


def split_segments(path: str) -> List[str]:
    return [segment for segment in path.strip("/").split("/") if segment]


def join_path(*parts: str) -> str:
    """Join path parts with a single "/", dropping empty parts."""
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


def handle_engine_path(engine_path: Optional[str], path: Optional[str]) -> Tuple[str, str]:
    """Resolve the engine and sub-path to operate on.

    An explicit engine path wins and lets engine names contain "/"; the
    path is then taken to be relative to it.

    Args:
        engine_path: Explicit engine mount path, may contain "/"
        path: "engine/sub/path" or, with engine_path, the sub path

    Returns:
        Tuple of (engine, sub_path) without surrounding slashes
    """
    if engine_path:
        return engine_path.strip("/"), (path or "").strip("/")
    return split_path(path or "")


def _map_values(tree: Tree, fn: Callable[[Any], Any]) -> Tree:
    result: Tree = {}
    for key, value in tree.items():
        if isinstance(value, dict):
            result[key] = _map_values(value, fn)
        else:
            result[key] = fn(value)
    return result


def _map_leaves(tree: Tree, fn: Callable[[Dict[str, Any]], Any]) -> Tree:
    result: Tree = {}
    for key, value in tree.items():
        if is_leaf(key, value):
            result[key] = fn(value)
        elif isinstance(value, dict):
            result[key] = _map_leaves(value, fn)
        else:
            result[key] = value
    return result


def only_keys(tree: Tree) -> Tree:
    """Replace every leaf value with the empty string."""
    return _map_values(tree, lambda _: "")


def only_paths(tree: Tree) -> Tree:
    """Replace every leaf with an empty map."""
    return _map_leaves(tree, lambda _: {})


def mask_values(tree: Tree, max_length: int = 12) -> Tree:
    """Replace every leaf value with asterisks.

    Args:
        tree: Tree to mask
        max_length: Cap on the number of asterisks; -1 keeps the full length

    Returns:
        Masked copy of the tree
    """

    def mask(value: Any) -> str:
        length = len(stringify(value))
        if max_length >= 0:
            length = min(length, max_length)
        return "*" * length

    return _map_values(tree, mask)


def flatten(tree: Tree, prefix: str = "") -> Dict[str, Dict[str, Any]]:
    """Collapse a tree into ``{"dir/sub/leaf": {key: value}}``.

    Args:
        tree: Tree to flatten
        prefix: Path prepended to every key

    Returns:
        Flat mapping from "/"-joined leaf path to a copy of the leaf
    """
    flat: Dict[str, Dict[str, Any]] = {}
    for key, value in tree.items():
        if not isinstance(value, dict):
            continue
        path = join_path(prefix, key)
        if is_leaf(key, value):
            flat[path] = dict(value)
        else:
            flat.update(flatten(value, path))
    return flat


def nest_under(segments: Iterable[str], tree: Tree) -> Tree:
    """Wrap ``tree`` in one directory level per segment, outermost first."""
    for segment in reversed(list(segments)):
        tree = {segment.strip("/") + "/": tree}
    return tree


def path_prefix(tree: Tree, root: str) -> Tree:
    """Nest ``tree`` under the directories named by ``root``."""
    return nest_under(split_segments(root), tree)


def unflatten(flat: Dict[str, Dict[str, Any]], prefix: str = "") -> Tree:
    """Inverse of :func:`flatten`, nesting the result under ``prefix``."""
    tree: Tree = {}
    for path in sorted_keys(flat):
        segments = split_segments(path)
        if not segments:
            raise BadInputError(f"invalid secret path {path!r}")
        node = tree
        for segment in segments[:-1]:
            node = node.setdefault(segment + "/", {})
        node[segments[-1]] = dict(flat[path])
    return path_prefix(tree, prefix)


def deep_merge(a: Tree, b: Tree) -> Tree:
    """Merge two trees, ``a`` winning on conflicts.

    Maps present on both sides are merged recursively, so a secret held on
    both sides ends up with the union of its keys. Between two scalars
    ``a`` wins. A map beats a scalar.
    """
    merged: Tree = {}
    for key in list(a) + [k for k in b if k not in a]:
        if key not in b:
            merged[key] = a[key]
            continue
        if key not in a:
            merged[key] = b[key]
            continue
        left, right = a[key], b[key]
        if isinstance(left, dict) and isinstance(right, dict):
            merged[key] = deep_merge(left, right)
        elif isinstance(right, dict) and not isinstance(left, dict):
            merged[key] = right
        else:
            merged[key] = left
    return merged


def compile_pattern(pattern: str) -> Pattern[str]:
    """Compile a user supplied regular expression.

    Raises:
        BadPatternError: If the pattern is invalid
    """
    try:
        return re.compile(pattern)
    except re.error as e:
        raise BadPatternError(
            f"invalid regex {pattern!r}: {e}", details={"pattern": pattern}
        ) from e


def regex_filter(names: Iterable[str], pattern: str) -> List[str]:
    """Keep the names in which ``pattern`` matches anywhere."""
    regex = compile_pattern(pattern)
    return [name for name in names if regex.search(name)]


def validate_leaf(path: str, data: Any) -> None:
    """Check that a leaf can be written to the store.

    Raises:
        BadInputError: On empty path segments, keys containing "/" or
            values that are not scalars
    """
    if not path.strip("/") or "" in path.strip("/").split("/"):
        raise BadInputError(
            f"invalid secret path {path!r}: empty path segment",
            details={"path": path},
        )
    if not isinstance(data, dict):
        raise BadInputError(
            f"secret {path!r} must be a map of keys to values",
            details={"path": path},
        )
    for key, value in data.items():
        if not isinstance(key, str) or not key or "/" in key:
            raise BadInputError(
                f"secret {path!r} has an invalid key {key!r}: keys must be non-empty and may not contain '/'",
                details={"path": path, "key": key},
            )
        if not isinstance(value, SCALAR_TYPES):
            raise BadInputError(
                f"secret {path!r} key {key!r} holds a nested value, only scalars are supported",
                details={"path": path, "key": key},
            )
