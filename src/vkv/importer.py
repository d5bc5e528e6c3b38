"""Import of secret trees produced by ``vkv export``."""

import json
import sys
from pathlib import Path
from typing import Dict, List, Optional, TextIO, Tuple

import yaml

from .client import StoreClient
from .config import ImportOptions
from .exceptions import BadInputError, ConflictError, NotFoundError
from .logging import get_logger
from .models import Tree
from .printer import RenderOptions, SecretPrinter
from .projection import (
    deep_merge,
    flatten,
    handle_engine_path,
    join_path,
    nest_under,
    sorted_keys,
    unflatten,
    validate_leaf,
)
from .walker import Walker

logger = get_logger(__name__)

PARSE_ERROR = "cannot parse input, perhaps not a vkv output?"


def read_input(file: Optional[str] = None, stdin: Optional[TextIO] = None) -> Tuple[str, str]:
    """Read the raw import payload.

    Args:
        file: File to read; stdin is used when not set
        stdin: Stream to use instead of ``sys.stdin``

    Returns:
        Tuple of (content, source description)

    Raises:
        BadInputError: If the file cannot be read
    """
    if file:
        try:
            return Path(file).read_text(encoding="utf-8"), file
        except OSError as e:
            raise BadInputError(f"cannot read {file}: {e}", details={"file": file}) from e
    return (stdin or sys.stdin).read(), "STDIN"


def parse_payload(text: str) -> Tree:
    """Parse a JSON or YAML secret tree, trying JSON first.

    Raises:
        BadInputError: If neither format yields a mapping
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise BadInputError(PARSE_ERROR, details={"parser_error": str(e)}) from e
    if not isinstance(data, dict):
        raise BadInputError(PARSE_ERROR)
    return data


def payload_leaves(payload: Tree) -> Dict[str, Dict]:
    """Flatten a payload to leaves relative to the destination.

    Top-level directory keys (ending with "/") name the engine the payload
    was exported from and are dropped; any other top-level entry is kept as
    part of the relative path.

    Raises:
        BadInputError: If a top-level value is not a mapping
    """
    leaves: Dict[str, Dict] = {}
    for key, value in payload.items():
        if not isinstance(value, dict):
            raise BadInputError(
                f"unexpected value under {key!r}, {PARSE_ERROR}", details={"key": key}
            )
        if key.endswith("/"):
            leaves.update(flatten(value))
        else:
            leaves.update(flatten({key: value}))
    return leaves


def _existing_tree(client: StoreClient, engine: str) -> Tree:
    try:
        return Walker(client).walk_subtree(engine)
    except NotFoundError:
        return {}


def import_secrets(
    client: StoreClient,
    payload: Tree,
    options: ImportOptions,
    writer: Optional[TextIO] = None,
) -> List[str]:
    """Write a parsed payload to the destination engine.

    With ``dry_run`` the payload is merged over the current engine contents
    and the result is rendered without writing anything. Otherwise the
    engine is enabled (reused only with ``force``) and every leaf is written
    in path order.

    Args:
        client: Store client
        payload: Parsed secret tree
        options: Import options
        writer: Stream for the preview and the final tree

    Returns:
        Canonical paths of the written secrets

    Raises:
        BadOptionComboError: On conflicting options
        BadInputError: If the payload holds no valid secrets
        ConflictError: If the engine exists and ``force`` is not set
    """
    options.validate_combination()
    engine, sub_path = handle_engine_path(options.engine_path, options.path)
    leaves = payload_leaves(payload)
    if not leaves:
        raise BadInputError("input contains no secrets")
    for path in sorted_keys(leaves):
        validate_leaf(join_path(sub_path, path), leaves[path])

    printer = SecretPrinter(
        RenderOptions(
            show_values=options.show_values, max_value_length=options.max_value_length
        ),
        writer,
    )

    if options.dry_run:
        incoming = unflatten({join_path(sub_path, p): leaves[p] for p in leaves})
        preview = deep_merge(incoming, _existing_tree(client, engine))
        printer.out(nest_under([engine], preview))
        logger.info("dry run: nothing was written, apply the changes with --force")
        return []

    if not options.force and _existing_tree(client, engine):
        raise ConflictError(
            f'engine "{engine}" already contains secrets. Use --force for overwriting',
            details={"path": engine},
        )
    client.enable_engine(engine, idempotent=options.force)

    written: List[str] = []
    for path in sorted_keys(leaves):
        target = join_path(sub_path, path)
        client.write_secret(engine, target, leaves[path])
        if not options.silent:
            logger.info(
                f"writing secret {join_path(engine, target)!r}",
                extra={"engine": engine, "path": target, "event_type": "secret_written"},
            )
        written.append(join_path(engine, target))

    if not options.silent:
        logger.info("successfully imported all secrets")
        walker = Walker(client)
        tree = walker.walk_subtree(engine, "")
        printer.out(nest_under([engine], tree))
    return written
