"""Capability matrix backend."""

from typing import Callable, Dict, List

from ..models import Capability, Tree
from ..projection import flatten, sorted_keys
from .options import RenderContext, RenderOptions

HEADER = ["PATH", "CREATE", "READ", "UPDATE", "DELETE", "LIST", "ROOT"]
GRANTED = "✔"
DENIED = "✖"

MIN_WIDTH = 4
PADDING = 2


def collect_capabilities(
    secrets: Tree, lookup: Callable[[str], Capability]
) -> Dict[str, Capability]:
    """Query capabilities for every leaf path of ``secrets``.

    Args:
        secrets: Tree whose leaf paths are looked up
        lookup: Callable returning the capabilities of one path

    Returns:
        Mapping of leaf path to capabilities
    """
    return {path: lookup(path) for path in sorted_keys(flatten(secrets))}


def align_columns(rows: List[List[str]]) -> str:
    """Pad every column but the last to a common width."""
    if not rows:
        return ""
    widths = [
        max(MIN_WIDTH, max(len(row[i]) for row in rows) + PADDING)
        for i in range(len(rows[0]))
    ]
    lines = []
    for row in rows:
        cells = [cell.ljust(widths[i]) for i, cell in enumerate(row[:-1])] + [row[-1]]
        lines.append("".join(cells).rstrip())
    return "\n".join(lines) + "\n"


def render_policy(secrets: Tree, options: RenderOptions, context: RenderContext) -> str:
    rows = [list(HEADER)]
    for path in sorted_keys(flatten(secrets)):
        capability = context.capabilities.get(path) or Capability()
        rows.append([path] + [GRANTED if c else DENIED for c in capability.as_row()])
    return align_columns(rows)
