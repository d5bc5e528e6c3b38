"""Output formats and rendering options for secret printers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel

from ..exceptions import BadOptionComboError
from ..models import Capability, EngineInfo, SecretLeaf


class OutputFormat(str, Enum):
    """Secret output formats."""

    BASE = "base"
    YAML = "yaml"
    JSON = "json"
    EXPORT = "export"
    MARKDOWN = "markdown"
    TEMPLATE = "template"
    POLICY = "policy"


FORMAT_ALIASES = {
    "yml": OutputFormat.YAML,
    "tmpl": OutputFormat.TEMPLATE,
}

# Formats that always print complete, unmasked values
_FULL_VALUE_FORMATS = {
    OutputFormat.YAML,
    OutputFormat.JSON,
    OutputFormat.EXPORT,
    OutputFormat.TEMPLATE,
}


def parse_format(value: Optional[str]) -> OutputFormat:
    """Resolve a user supplied format name, accepting aliases.

    Raises:
        BadOptionComboError: If the format is unknown
    """
    normalized = (value or "base").strip().lower()
    if normalized in FORMAT_ALIASES:
        return FORMAT_ALIASES[normalized]
    try:
        return OutputFormat(normalized)
    except ValueError:
        valid = ", ".join(f.value for f in OutputFormat)
        raise BadOptionComboError(
            f"invalid format {value!r} (valid options: {valid})",
            details={"format": value},
        ) from None


class RenderOptions(BaseModel):
    """How a secret tree is projected and rendered."""

    format: OutputFormat = OutputFormat.BASE
    only_keys: bool = False
    only_paths: bool = False
    show_values: bool = False
    max_value_length: int = 12
    template_source: Optional[str] = None
    show_version: bool = False
    show_metadata: bool = False
    include_path: bool = False
    upper: bool = False

    def resolve(self) -> "RenderOptions":
        """Validate option combinations and apply per-format overrides.

        Returns:
            A copy with the overrides of the selected format applied

        Raises:
            BadOptionComboError: On conflicting projections or a template
                format without template source
        """
        if self.only_keys and self.show_values:
            raise BadOptionComboError("cannot specify both --only-keys and --show-values")
        if self.only_paths and self.show_values:
            raise BadOptionComboError("cannot specify both --only-paths and --show-values")
        if self.only_keys and self.only_paths:
            raise BadOptionComboError("cannot specify both --only-keys and --only-paths")

        update: Dict[str, object] = {}
        if self.format in _FULL_VALUE_FORMATS:
            update = {
                "only_keys": False,
                "only_paths": False,
                "show_values": True,
                "max_value_length": -1,
            }
        elif self.format == OutputFormat.POLICY:
            update = {"only_keys": False, "only_paths": False, "show_values": True}

        if self.format == OutputFormat.TEMPLATE and not self.template_source:
            raise BadOptionComboError(
                "either --template-file or --template-string is required for the template format"
            )
        return self.model_copy(update=update)


@dataclass
class RenderContext:
    """Store facts a backend may show but must not fetch itself."""

    leaves: Dict[str, SecretLeaf] = field(default_factory=dict)
    capabilities: Dict[str, Capability] = field(default_factory=dict)
    # Engine mount facts by engine path, for the tree root label
    engines: Dict[str, EngineInfo] = field(default_factory=dict)
