"""ASCII tree backend."""

from typing import Any, Dict, List

from ..models import Tree
from ..projection import is_leaf, join_path, sorted_keys, stringify
from .options import RenderContext, RenderOptions

BRANCH = "├── "
LAST_BRANCH = "└── "
INDENT = "│   "
LAST_INDENT = "    "


def _leaf_label(name: str, path: str, options: RenderOptions, context: RenderContext) -> str:
    label = name
    leaf = context.leaves.get(path)
    if leaf is None:
        return label
    if options.show_version and leaf.version is not None:
        label = f"v{leaf.version}: {label}"
    if options.show_metadata and leaf.custom_metadata:
        pairs = " ".join(
            f"{k}={stringify(leaf.custom_metadata[k])}"
            for k in sorted_keys(leaf.custom_metadata)
        )
        label = f"{label} [{pairs}]"
    return label


def _label(
    key: str, value: Any, path: str, options: RenderOptions, context: RenderContext
) -> str:
    if is_leaf(key, value):
        return _leaf_label(key, path, options, context)
    if isinstance(value, dict):
        return key
    if options.only_keys:
        return key
    return f"{key}={stringify(value)}"


def _render_children(
    node: Dict[str, Any],
    path: str,
    prefix: str,
    lines: List[str],
    options: RenderOptions,
    context: RenderContext,
) -> None:
    keys = sorted_keys(node)
    for index, key in enumerate(keys):
        last = index == len(keys) - 1
        value = node[key]
        child_path = join_path(path, key)
        lines.append(
            prefix + (LAST_BRANCH if last else BRANCH)
            + _label(key, value, child_path, options, context)
        )
        if isinstance(value, dict):
            _render_children(
                value,
                child_path,
                prefix + (LAST_INDENT if last else INDENT),
                lines,
                options,
                context,
            )


def _root_label(key: str, value: Any, options: RenderOptions, context: RenderContext) -> str:
    label = _label(key, value, join_path(key), options, context)
    info = context.engines.get(join_path(key))
    if info is None:
        return label
    if info.description:
        label = f"{label} [desc={info.description}]"
    return f"{label} [type={info.type_label}]"


def render_tree(secrets: Tree, options: RenderOptions, context: RenderContext) -> str:
    """Render every top-level entry as the root of an ASCII tree.

    Roots with known engine facts carry ``[desc=...]`` and ``[type=...]``.
    """
    lines: List[str] = []
    for key in sorted_keys(secrets):
        value = secrets[key]
        lines.append(_root_label(key, value, options, context))
        if isinstance(value, dict):
            _render_children(value, join_path(key), "", lines, options, context)
    return "\n".join(lines) + "\n" if lines else ""
