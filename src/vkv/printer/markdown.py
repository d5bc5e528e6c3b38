"""Markdown table backend."""

from typing import List, Sequence

from ..models import Tree
from ..projection import flatten, sorted_keys, stringify
from .options import RenderContext, RenderOptions


def _center(text: str, width: int) -> str:
    padding = width - len(text)
    left = padding // 2
    return " " * left + text + " " * (padding - left)


def merge_cells(rows: List[List[str]]) -> List[List[str]]:
    """Blank cells repeating the row above, left to right.

    A cell is merged only when every cell to its left in the same row was
    merged as well.
    """
    merged: List[List[str]] = []
    previous: Sequence[str] = ()
    for row in rows:
        out = list(row)
        for index, cell in enumerate(row):
            if index < len(previous) and previous[index] == cell:
                out[index] = ""
            else:
                break
        merged.append(out)
        previous = row
    return merged


def format_table(headers: List[str], rows: List[List[str]]) -> str:
    """Format a pipe table with centered upper-case headers."""
    headers = [h.upper() for h in headers]
    widths = [len(h) for h in headers]
    for row in rows:
        for index, cell in enumerate(row):
            widths[index] = max(widths[index], len(cell))

    lines = [
        "| " + " | ".join(_center(h, widths[i]) for i, h in enumerate(headers)) + " |",
        "|" + "|".join("-" * (w + 2) for w in widths) + "|",
    ]
    for row in merge_cells(rows):
        lines.append(
            "| " + " | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)) + " |"
        )
    return "\n".join(lines) + "\n"


def render_markdown(secrets: Tree, options: RenderOptions, context: RenderContext) -> str:
    flat = flatten(secrets)
    rows: List[List[str]] = []

    if options.only_paths:
        headers = ["path"]
        rows = [[path] for path in sorted_keys(flat)]
    elif options.only_keys:
        headers = ["path", "key"]
        for path in sorted_keys(flat):
            rows.extend([path, key] for key in sorted_keys(flat[path]))
    else:
        headers = ["path", "key", "value"]
        if options.show_version:
            headers.append("version")
        if options.show_metadata:
            headers.append("metadata")
        for path in sorted_keys(flat):
            leaf = flat[path]
            extra = _leaf_columns(path, options, context)
            for index, key in enumerate(sorted_keys(leaf)):
                row = [path, key, stringify(leaf[key])]
                # version and metadata only on the first row of a secret
                row.extend(extra if index == 0 else [""] * len(extra))
                rows.append(row)

    return format_table(headers, rows)


def _leaf_columns(path: str, options: RenderOptions, context: RenderContext) -> List[str]:
    leaf = context.leaves.get(path)
    columns = []
    if options.show_version:
        columns.append(str(leaf.version) if leaf and leaf.version is not None else "")
    if options.show_metadata:
        metadata = leaf.custom_metadata if leaf else {}
        columns.append(
            " ".join(f"{k}={stringify(metadata[k])}" for k in sorted_keys(metadata))
        )
    return columns
