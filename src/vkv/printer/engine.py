"""Printers for engine and namespace listings."""

import sys
from typing import List, Optional, TextIO

from ..exceptions import BadOptionComboError, NotFoundError
from ..models import EngineMap, NamespaceMap
from ..projection import join_path, regex_filter, sort_key
from .serial import to_json, to_yaml

LIST_FORMATS = ("base", "yaml", "json")


def parse_list_format(value: Optional[str]) -> str:
    """Resolve a listing format name.

    Raises:
        BadOptionComboError: If the format is not base, yaml or json
    """
    normalized = (value or "base").strip().lower()
    if normalized == "yml":
        normalized = "yaml"
    if normalized not in LIST_FORMATS:
        raise BadOptionComboError(
            f"invalid format {value!r} (valid options: {', '.join(LIST_FORMATS)})",
            details={"format": value},
        )
    return normalized


def _dedupe_sorted(names: List[str]) -> List[str]:
    return sorted(set(names), key=sort_key)


class _ListPrinter:
    label = "items"

    def __init__(
        self,
        fmt: str = "base",
        regex: Optional[str] = None,
        writer: Optional[TextIO] = None,
    ):
        self.format = parse_list_format(fmt)
        self.regex = regex
        self.writer = writer or sys.stdout

    def _emit(self, names: List[str]) -> None:
        if self.regex:
            names = regex_filter(names, self.regex)
        names = _dedupe_sorted(names)

        if self.format == "yaml":
            self.writer.write(to_yaml({self.label: names}))
        elif self.format == "json":
            self.writer.write(to_json({self.label: names}))
        else:
            for name in names:
                self.writer.write(name + "\n")


class EnginePrinter(_ListPrinter):
    """Print the engines of one or more namespaces."""

    label = "engines"

    def __init__(
        self,
        fmt: str = "base",
        regex: Optional[str] = None,
        include_ns_prefix: bool = False,
        writer: Optional[TextIO] = None,
    ):
        super().__init__(fmt, regex, writer)
        self.include_ns_prefix = include_ns_prefix

    def build_list(self, engines: EngineMap) -> List[str]:
        names = []
        for namespace, mounts in engines.items():
            for mount in mounts:
                names.append(join_path(namespace, mount) if self.include_ns_prefix else mount)
        return names

    def out(self, engines: EngineMap) -> None:
        """Print engines, optionally prefixed with their namespace.

        Raises:
            NotFoundError: If there are no engines at all
            BadPatternError: If the regex is invalid
        """
        names = self.build_list(engines)
        if not names:
            raise NotFoundError("no engines found")
        self._emit(names)


class NamespacePrinter(_ListPrinter):
    """Print every namespace of a namespace map as a full path."""

    label = "namespaces"

    def build_list(self, namespaces: NamespaceMap) -> List[str]:
        names: List[str] = []
        for parent, children in namespaces.items():
            if parent:
                names.append(parent)
            names.extend(join_path(parent, child) for child in children)
        return names

    def out(self, namespaces: NamespaceMap) -> None:
        """Print namespaces.

        Raises:
            NotFoundError: If the namespace map is empty
            BadPatternError: If the regex is invalid
        """
        if not namespaces:
            raise NotFoundError("no namespaces found")
        self._emit(self.build_list(namespaces))
