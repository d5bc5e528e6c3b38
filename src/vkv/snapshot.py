"""Snapshot save and restore.

A snapshot is a directory tree: one directory per namespace (the
destination itself for the root namespace) holding one file per KV engine,
``<engine>.yaml``, whose content is the engine's secret tree as JSON.
"""

import json
import os
import posixpath
from pathlib import Path
from typing import List, Union

from .client import StoreClient
from .config import DEFAULT_SNAPSHOT_DIR
from .exceptions import BadInputError
from .logging import get_logger
from .models import Tree
from .printer import OutputFormat, RenderOptions, SecretPrinter
from .projection import flatten, join_path, sort_key, sorted_keys, validate_leaf
from .walker import Walker

logger = get_logger(__name__)

SNAPSHOT_SUFFIX = ".yaml"


def _write_private(path: Path, content: str) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    os.chmod(path, 0o600)


def save_snapshot(
    client: StoreClient,
    destination: Union[str, Path] = DEFAULT_SNAPSHOT_DIR,
    namespace: str = "",
    skip_errors: bool = False,
) -> List[Path]:
    """Write every engine of every namespace below ``namespace`` to disk.

    Args:
        client: Store client
        destination: Snapshot root directory, created if missing
        namespace: Namespace to start from, "" for the client's namespace
        skip_errors: Omit paths that cannot be listed or read

    Returns:
        Paths of the written engine files
    """
    destination = Path(destination)
    engines = Walker(client, skip_errors=skip_errors).walk_engines(namespace)
    printer = SecretPrinter(RenderOptions(format=OutputFormat.JSON))
    written: List[Path] = []

    for ns in sorted(engines, key=sort_key):
        ns_dir = destination / ns if ns else destination
        ns_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"created {ns_dir}", extra={"namespace": ns})

        walker = Walker(client, namespace=ns, skip_errors=skip_errors)
        for engine in engines[ns]:
            tree = walker.walk_subtree(engine)
            target = ns_dir / f"{engine.strip('/')}{SNAPSHOT_SUFFIX}"
            target.parent.mkdir(parents=True, exist_ok=True)
            _write_private(target, printer.render(tree))
            logger.info(
                f"created {target}",
                extra={"namespace": ns, "engine": engine, "event_type": "snapshot_saved"},
            )
            written.append(target)

    return written


def load_engine_file(path: Path) -> Tree:
    """Parse one snapshot engine file.

    Raises:
        BadInputError: If the file is not a JSON object
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BadInputError(f"cannot parse snapshot file {path}: {e}", details={"file": str(path)}) from e
    if not isinstance(data, dict):
        raise BadInputError(
            f"snapshot file {path} does not contain a secret tree", details={"file": str(path)}
        )
    return data


def restore_snapshot(
    client: StoreClient, source: Union[str, Path] = DEFAULT_SNAPSHOT_DIR
) -> List[str]:
    """Recreate namespaces, engines and secrets from a snapshot directory.

    Directories are visited parents first; namespaces and engines that
    already exist are reused and secrets are overwritten.

    Args:
        client: Store client
        source: Snapshot root directory

    Returns:
        Canonical paths (``namespace/engine/path``) of the written secrets

    Raises:
        BadInputError: If the source is not a directory or a file cannot be
            parsed
    """
    root = Path(source).resolve()
    if not root.is_dir():
        raise BadInputError(f"snapshot source {root} is not a directory", details={"source": str(root)})

    restored: List[str] = []
    for current, dirnames, filenames in os.walk(root):
        dirnames.sort()
        relative = Path(current).relative_to(root).as_posix()
        namespace = "" if relative == "." else relative

        if namespace:
            parent, name = posixpath.split(namespace)
            client.create_namespace(parent, name, idempotent=True)
            logger.info(
                f"[{parent or 'root'}] restore namespace: {name!r}",
                extra={"namespace": namespace, "event_type": "namespace_restored"},
            )

        for filename in sorted(filenames):
            path = Path(current) / filename
            if not path.is_file():
                continue
            engine = path.stem
            client.enable_engine(engine, idempotent=True, namespace=namespace)
            flat = flatten(load_engine_file(path))
            for secret_path in sorted_keys(flat):
                validate_leaf(secret_path, flat[secret_path])
                client.write_secret(engine, secret_path, flat[secret_path], namespace=namespace)
                logger.info(
                    f"[{namespace or 'root'}] writing secret {join_path(engine, secret_path)!r}",
                    extra={"namespace": namespace, "engine": engine, "path": secret_path},
                )
                restored.append(join_path(namespace, engine, secret_path))

    return restored
