"""Search across every visible namespace, engine and secret."""

import sys
from dataclasses import dataclass
from typing import Dict, List, Optional, TextIO

from .client import StoreClient
from .config import FindSecretsOptions
from .logging import get_logger
from .models import Tree
from .projection import compile_pattern, flatten, join_path, sort_key, sorted_keys, stringify
from .walker import Walker

logger = get_logger(__name__)

MATCH_NAMESPACE = "namespace"
MATCH_ENGINE = "engine"
MATCH_SECRET_NAME = "secret-name"
MATCH_SECRET_VALUE = "secret-value"

MATCH_LABELS = {
    MATCH_NAMESPACE: "[Match in Namespace name]",
    MATCH_ENGINE: "[Match in KV Engine Name]",
    MATCH_SECRET_NAME: "[Match in Secret Name]",
    MATCH_SECRET_VALUE: "[Match in Secret Values]",
}


@dataclass
class Match:
    """One search hit."""

    kind: str
    path: str
    url: str = ""


def ui_url(address: str, kind: str, engine: str, leaf: str) -> str:
    """Build the web UI link for a match; a namespace match links the bare address."""
    if not address:
        return ""
    engine = engine.strip("/") + "/"
    if kind == MATCH_NAMESPACE:
        return address
    if kind == MATCH_ENGINE:
        return f"{address}/ui/vault/secrets/{engine}kv/list"
    if kind == MATCH_SECRET_NAME:
        return f"{address}/ui/vault/secrets/{engine}kv/list/{leaf}"
    return f"{address}/ui/vault/secrets/{engine}kv/{leaf}"


def find_matches(
    client: StoreClient, pattern: str, trees: Dict[str, Dict[str, Tree]]
) -> List[Match]:
    """Match ``pattern`` against namespaces, engines, leaf paths and leaf contents.

    Args:
        client: Store client, used for its address
        pattern: Regular expression, matched anywhere in the text
        trees: Namespace -> engine -> engine tree

    Returns:
        One match per leaf and kind, in namespace, engine and path order

    Raises:
        BadPatternError: If the pattern is invalid
    """
    regex = compile_pattern(pattern)
    matches: List[Match] = []

    for ns in sorted(trees, key=sort_key):
        for engine in sorted(trees[ns], key=sort_key):
            flat = flatten(trees[ns][engine])
            for leaf in sorted_keys(flat):
                kinds = []
                if ns and regex.search(ns):
                    kinds.append(MATCH_NAMESPACE)
                if regex.search(engine.strip("/")):
                    kinds.append(MATCH_ENGINE)
                if regex.search(leaf):
                    kinds.append(MATCH_SECRET_NAME)
                if any(
                    regex.search(key) or regex.search(stringify(value))
                    for key, value in flat[leaf].items()
                ):
                    kinds.append(MATCH_SECRET_VALUE)

                for kind in kinds:
                    matches.append(
                        Match(
                            kind=kind,
                            path=join_path(ns, engine, leaf),
                            url=ui_url(client.address, kind, engine, leaf),
                        )
                    )
    return matches


def find_secrets(
    client: StoreClient, options: FindSecretsOptions, writer: Optional[TextIO] = None
) -> List[Match]:
    """Search the whole store and print one line per match.

    Paths that cannot be listed or read are skipped.

    Returns:
        The matches that were printed
    """
    writer = writer or sys.stdout
    compile_pattern(options.pattern)

    engines = Walker(client, skip_errors=True).walk_engines("")
    trees: Dict[str, Dict[str, Tree]] = {}
    for ns, mounts in engines.items():
        walker = Walker(client, namespace=ns, skip_errors=True)
        trees[ns] = {engine: walker.walk_subtree(engine) for engine in mounts}

    if not options.no_header:
        engine_count = sum(len(mounts) for mounts in engines.values())
        secret_count = sum(
            len(flatten(tree)) for ns_trees in trees.values() for tree in ns_trees.values()
        )
        writer.write(
            f'searching for pattern "{options.pattern}" in all visible namespaces '
            f"({len(engines)}), KV engines ({engine_count}) & secrets ({secret_count}):\n"
        )

    matches = find_matches(client, options.pattern, trees)
    for match in matches:
        columns = []
        if not options.no_match_kind:
            columns.append(MATCH_LABELS[match.kind])
        columns.append(match.path)
        if options.print_url and match.url:
            columns.append(match.url)
        writer.write("\t".join(columns) + "\n")

    logger.debug(f"{len(matches)} matches for {options.pattern!r}")
    return matches
