"""Core data types shared by the client, walker and printers."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# A secret tree: directory keys end with "/", leaves map names to scalars.
Tree = Dict[str, Any]

# Namespace path -> sorted list of secret engine mount names.
EngineMap = Dict[str, List[str]]

# Namespace path -> sorted list of direct child namespace names.
NamespaceMap = Dict[str, List[str]]


@dataclass
class SecretLeaf:
    """A single secret read from a KV engine."""

    data: Dict[str, Any]
    version: Optional[int] = None
    custom_metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EngineInfo:
    """Mount facts of a secret engine, as shown next to its tree."""

    type: str
    version: str
    description: str = ""

    @property
    def type_label(self) -> str:
        return f"{self.type}{self.version}"


@dataclass
class Capability:
    """Token capabilities on one path.

    ``root`` implies every other capability.
    """

    create: bool = False
    read: bool = False
    update: bool = False
    delete: bool = False
    list: bool = False
    root: bool = False

    def __post_init__(self) -> None:
        if self.root:
            self.create = self.read = self.update = True
            self.delete = self.list = True

    @classmethod
    def from_names(cls, names: List[str]) -> "Capability":
        """Build a Capability from the strings returned by the store."""
        granted = set(names or [])
        return cls(
            create="create" in granted,
            read="read" in granted,
            update="update" in granted,
            delete="delete" in granted,
            list="list" in granted,
            root="root" in granted,
        )

    def as_row(self) -> List[bool]:
        return [self.create, self.read, self.update, self.delete, self.list, self.root]


@dataclass
class WalkResult:
    """Outcome of walking a path: the tree and whether the path was a leaf."""

    tree: Tree
    is_leaf: bool = False
