"""Rendering of secret trees and engine/namespace listings.

The entry point is :class:`SecretPrinter`, which applies the value
projections requested by :class:`RenderOptions` and hands the result to the
backend registered for the selected :class:`OutputFormat`.
"""

import sys
from typing import Callable, Dict, Optional, TextIO

from ..models import Capability, EngineInfo, SecretLeaf, Tree
from ..projection import mask_values, only_keys, only_paths
from .engine import EnginePrinter, NamespacePrinter, parse_list_format
from .export import render_export
from .markdown import render_markdown
from .options import OutputFormat, RenderContext, RenderOptions, parse_format
from .policy import collect_capabilities, render_policy
from .serial import render_json, render_yaml, to_json, to_yaml
from .template import render_template
from .tree import render_tree

__all__ = [
    "SecretPrinter",
    "EnginePrinter",
    "NamespacePrinter",
    "OutputFormat",
    "RenderContext",
    "RenderOptions",
    "collect_capabilities",
    "parse_format",
    "parse_list_format",
    "to_json",
    "to_yaml",
]

Backend = Callable[[Tree, RenderOptions, RenderContext], str]

# Registry mapping output formats to their backend functions
_BACKEND_REGISTRY: Dict[OutputFormat, Backend] = {
    OutputFormat.BASE: render_tree,
    OutputFormat.YAML: render_yaml,
    OutputFormat.JSON: render_json,
    OutputFormat.EXPORT: render_export,
    OutputFormat.MARKDOWN: render_markdown,
    OutputFormat.TEMPLATE: render_template,
    OutputFormat.POLICY: render_policy,
}


class SecretPrinter:
    """Render secret trees in one of the supported output formats."""

    def __init__(
        self,
        options: Optional[RenderOptions] = None,
        writer: Optional[TextIO] = None,
        leaves: Optional[Dict[str, SecretLeaf]] = None,
        capabilities: Optional[Dict[str, Capability]] = None,
        engines: Optional[Dict[str, EngineInfo]] = None,
    ):
        """Initialize the printer.

        Args:
            options: Rendering options, validated on construction
            writer: Destination stream (defaults to stdout)
            leaves: Leaves by canonical path, for version and metadata labels
            capabilities: Capabilities by leaf path, for the policy format
            engines: Engine mount facts by engine path, for the tree root

        Raises:
            BadOptionComboError: If the options conflict
        """
        self.options = (options or RenderOptions()).resolve()
        self.writer = writer or sys.stdout
        self.context = RenderContext(
            leaves=leaves or {}, capabilities=capabilities or {}, engines=engines or {}
        )

    def project(self, secrets: Tree) -> Tree:
        """Apply masking and key/path projections."""
        result = secrets
        if not self.options.show_values:
            result = mask_values(result, self.options.max_value_length)
        if self.options.only_paths:
            result = only_paths(result)
        elif self.options.only_keys:
            result = only_keys(result)
        return result

    def render(self, secrets: Tree) -> str:
        backend = _BACKEND_REGISTRY[self.options.format]
        return backend(self.project(secrets), self.options, self.context)

    def out(self, secrets: Tree) -> None:
        self.writer.write(self.render(secrets))
