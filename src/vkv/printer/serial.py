"""YAML and JSON backends."""

import json

import yaml

from ..models import Tree
from ..projection import sort_tree
from .options import RenderContext, RenderOptions


def to_json(data: object) -> str:
    """Two-space indented JSON without ASCII escaping, newline terminated."""
    return json.dumps(sort_tree(data), indent=2, ensure_ascii=False) + "\n"


def to_yaml(data: object) -> str:
    """Block-style YAML, newline terminated."""
    return yaml.safe_dump(
        sort_tree(data),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        width=float("inf"),
    )


def render_json(secrets: Tree, options: RenderOptions, context: RenderContext) -> str:
    return to_json(secrets)


def render_yaml(secrets: Tree, options: RenderOptions, context: RenderContext) -> str:
    return to_yaml(secrets)
