"""CLI entry point for vkv."""

import argparse
import sys
from typing import Callable, List, NoReturn, Optional

from pydantic import ValidationError

from . import __version__
from .client import StoreClient
from .config import (
    DEFAULT_SNAPSHOT_DIR,
    ClientConfig,
    ExportOptions,
    FindSecretsOptions,
    ImportOptions,
    ListOptions,
    RefresherConfig,
    ServerOptions,
    SnapshotRestoreOptions,
    SnapshotSaveOptions,
    env_bool,
    env_int,
    env_name,
    env_str,
)
from .exceptions import BadOptionComboError, VkvError, get_error_kind, wrap_exception
from .exporter import build_render_options, export_secrets
from .importer import import_secrets, parse_payload, read_input
from .lease import LeaseRefresher
from .logging import get_logger, setup_logging
from .printer import EnginePrinter, NamespacePrinter
from .projection import compile_pattern
from .search import find_secrets
from .server import serve
from .snapshot import restore_snapshot, save_snapshot
from .walker import Walker

logger = get_logger(__name__)

# VKV_MODE value -> subcommand run when vkv is started without one
MODE_COMMANDS = {
    "EXPORT": ("export",),
    "IMPORT": ("import",),
    "SERVER": ("server",),
    "LIST": ("list", "engines"),
    "SNAPSHOT_SAVE": ("snapshot", "save"),
    "SNAPSHOT_RESTORE": ("snapshot", "restore"),
}


class ArgumentParser(argparse.ArgumentParser):
    """Argument parser raising instead of exiting on usage errors."""

    def error(self, message: str) -> NoReturn:
        raise BadOptionComboError(message)


def connect_store() -> StoreClient:
    """Build an authenticated client from the environment."""
    return StoreClient.from_config(ClientConfig.from_env())


class Session:
    """Lazily connected store client with its token refresher."""

    def __init__(self) -> None:
        self.client: Optional[StoreClient] = None
        self.refresher: Optional[LeaseRefresher] = None

    def connect(self) -> StoreClient:
        if self.client is None:
            self.client = connect_store()
            config = RefresherConfig.from_env()
            if config.enabled:
                self.refresher = LeaseRefresher.from_config(self.client, config)
                self.refresher.start()
        return self.client

    def close(self) -> None:
        if self.refresher is not None:
            self.refresher.stop(timeout=1.0)
            self.refresher = None


def export_command(args: argparse.Namespace, session: Session) -> int:
    """Print a secret subtree."""
    options = ExportOptions(
        path=args.path,
        engine_path=args.engine_path,
        format=args.format,
        only_keys=args.only_keys,
        only_paths=args.only_paths,
        show_values=args.show_values,
        max_value_length=args.max_value_length,
        template_file=args.template_file,
        template_string=args.template_string,
        show_version=args.show_version,
        show_metadata=args.show_metadata,
        include_path=args.include_path,
        upper=args.upper,
        skip_errors=args.skip_errors,
    )
    build_render_options(options)
    output = export_secrets(session.connect(), options)
    sys.stdout.write(output)
    return 0


def import_command(args: argparse.Namespace, session: Session) -> int:
    """Write secrets from a file or stdin."""
    file = args.file if args.file != "-" else None
    if args.source not in (None, "-") and not file:
        file = args.source
    options = ImportOptions(
        path=args.path,
        engine_path=args.engine_path,
        file=file,
        from_stdin="-" in (args.source, args.file),
        force=args.force,
        dry_run=args.dry_run,
        silent=args.silent,
        show_values=args.show_values,
        max_value_length=args.max_value_length,
    )
    options.validate_combination()

    text, source = read_input(options.file)
    if not options.silent:
        logger.info(f"reading secrets from {source}")
    payload = parse_payload(text)

    import_secrets(session.connect(), payload, options, writer=sys.stdout)
    return 0


def snapshot_save_command(args: argparse.Namespace, session: Session) -> int:
    """Save all engines of all namespaces to a directory."""
    options = SnapshotSaveOptions(
        namespace=args.namespace or "",
        destination=args.destination,
        skip_errors=args.skip_errors,
    )
    save_snapshot(
        session.connect(),
        destination=options.destination,
        namespace=options.namespace,
        skip_errors=options.skip_errors,
    )
    return 0


def snapshot_restore_command(args: argparse.Namespace, session: Session) -> int:
    """Restore a snapshot directory."""
    options = SnapshotRestoreOptions(source=args.source)
    restore_snapshot(session.connect(), options.source)
    return 0


def _list_options(args: argparse.Namespace) -> ListOptions:
    options = ListOptions(
        namespace=args.namespace or "",
        regex=args.regex or None,
        format=args.format,
        all=getattr(args, "all", False),
        include_ns_prefix=getattr(args, "include_ns_prefix", False),
    )
    if options.regex:
        compile_pattern(options.regex)
    return options


def namespaces_command(args: argparse.Namespace, session: Session) -> int:
    """Print the child namespaces of a namespace, or all nested ones with --all."""
    options = _list_options(args)
    printer = NamespacePrinter(fmt=options.format, regex=options.regex, writer=sys.stdout)
    client = session.connect()
    if options.all:
        namespaces = Walker(client).walk_namespaces(options.namespace)
    else:
        namespaces = {options.namespace: client.list_namespaces(options.namespace)}
    printer.out(namespaces)
    return 0


def engines_command(args: argparse.Namespace, session: Session) -> int:
    """Print the KV engines of a namespace, or of all namespaces below it."""
    options = _list_options(args)
    printer = EnginePrinter(
        fmt=options.format,
        regex=options.regex,
        include_ns_prefix=options.include_ns_prefix,
        writer=sys.stdout,
    )
    client = session.connect()
    if options.all:
        engines = Walker(client).walk_engines(options.namespace)
    else:
        engines = {options.namespace: client.list_engines(options.namespace)}
    printer.out(engines)
    return 0


def find_secrets_command(args: argparse.Namespace, session: Session) -> int:
    """Search namespaces, engines and secrets for a pattern."""
    if not args.pattern:
        raise BadOptionComboError("a search pattern is required (--pattern)")
    options = FindSecretsOptions(
        pattern=args.pattern,
        no_header=args.no_header,
        print_url=args.print_url,
        no_match_kind=args.no_match_kind,
    )
    compile_pattern(options.pattern)
    find_secrets(session.connect(), options, writer=sys.stdout)
    return 0


def server_command(args: argparse.Namespace, session: Session) -> int:
    """Serve the export of a subtree over HTTP."""
    options = ServerOptions(
        port=args.port,
        host=args.host,
        path=args.path,
        engine_path=args.engine_path,
        skip_errors=args.skip_errors,
    )
    options.validate_combination()
    serve(session.connect(), options)
    return 0


def version_command(args: argparse.Namespace, session: Session) -> int:
    print(f"vkv {__version__}")
    return 0


def _add_flag(
    parser: argparse.ArgumentParser, flag: str, env: str, help_text: str, short: Optional[str] = None
) -> None:
    flags = [short, flag] if short else [flag]
    parser.add_argument(
        *flags, action="store_true", default=env_bool(env), help=f"{help_text} (env: {env})"
    )


def _add_list_arguments(parser: argparse.ArgumentParser, command: str, engines: bool) -> None:
    parser.add_argument(
        "-n",
        "--namespace",
        default=env_str(env_name(command, "ns"), ""),
        help=f"namespace to start from (env: {env_name(command, 'ns')})",
    )
    parser.add_argument(
        "-r",
        "--regex",
        default=env_str(env_name(command, "regex")),
        help=f"filter by regular expression (env: {env_name(command, 'regex')})",
    )
    parser.add_argument(
        "-f",
        "--format",
        default=env_str(env_name(command, "format"), "base"),
        help=f'output format: "base", "yaml" or "json" (env: {env_name(command, "format")})',
    )
    if engines:
        _add_flag(
            parser, "--include-ns-prefix", env_name(command, "ns_prefix"), "prepend the namespace", short="-p"
        )
        _add_flag(parser, "--all", env_name(command, "all"), "list engines of all namespaces below --namespace", short="-a")
    else:
        _add_flag(parser, "--all", env_name(command, "all"), "list all nested namespaces below --namespace", short="-a")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser; option defaults come from the environment."""
    parser = ArgumentParser(
        prog="vkv",
        description="Recursively list, export, import and snapshot Vault KV secret engines",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print all secrets of the "secret" engine as a tree
  vkv export -p secret

  # Export as JSON and import into another engine
  vkv export -p secret -f json | vkv import - -p copy

  # Snapshot every engine of every namespace
  vkv snapshot save -d ./backup
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Show version number and exit",
    )
    parser.add_argument(
        "--log-level",
        default=env_str("VKV_LOG_LEVEL", "INFO"),
        help="Log level (default: INFO, env: VKV_LOG_LEVEL)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=env_str("VKV_LOG_FORMAT", "text"),
        help="Log format for progress messages on stderr (env: VKV_LOG_FORMAT)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Export command
    export_parser = subparsers.add_parser(
        "export",
        help="Recursively print the secrets of a KV engine path",
        description="Print every secret below a path in one of the formats "
        "base, yaml, json, export, markdown, template or policy.",
    )
    export_parser.add_argument(
        "-p", "--path", default=env_str(env_name("export", "path")),
        help="KV engine path, e.g. secret/app (env: VKV_EXPORT_PATH)",
    )
    export_parser.add_argument(
        "-e", "--engine-path", default=env_str(env_name("export", "engine_path")),
        help="engine path for engines containing '/'; --path is then relative to it "
        "(env: VKV_EXPORT_ENGINE_PATH)",
    )
    _add_flag(export_parser, "--skip-errors", env_name("export", "skip_errors"), "skip paths that cannot be read")
    _add_flag(export_parser, "--only-keys", env_name("export", "only_keys"), "print only keys")
    _add_flag(export_parser, "--only-paths", env_name("export", "only_paths"), "print only paths")
    _add_flag(export_parser, "--show-values", env_name("export", "show_values"), "do not mask values")
    _add_flag(export_parser, "--show-version", env_name("export", "show_version"), "show secret versions")
    _add_flag(export_parser, "--show-metadata", env_name("export", "show_metadata"), "show custom metadata")
    _add_flag(export_parser, "--include-path", env_name("export", "include_path"), "prefix export variable names with their path")
    _add_flag(export_parser, "--upper", env_name("export", "upper"), "upper-case export variable names")
    export_parser.add_argument(
        "--max-value-length",
        type=int,
        default=env_int(env_name("export", "max_value_length"), 12),
        help="maximum number of characters of a masked value, -1 to disable "
        "(env: VKV_EXPORT_MAX_VALUE_LENGTH)",
    )
    export_parser.add_argument(
        "-f", "--format", default=env_str(env_name("export", "format"), "base"),
        help="output format: base, yaml, json, export, markdown, template, policy "
        "(env: VKV_EXPORT_FORMAT)",
    )
    export_parser.add_argument(
        "--template-file", default=env_str(env_name("export", "template_file")),
        help="Jinja2 template file for the template format (env: VKV_EXPORT_TEMPLATE_FILE)",
    )
    export_parser.add_argument(
        "--template-string", default=env_str(env_name("export", "template_string")),
        help="Jinja2 template string for the template format (env: VKV_EXPORT_TEMPLATE_STRING)",
    )
    export_parser.set_defaults(handler=export_command)

    # Import command
    import_parser = subparsers.add_parser(
        "import",
        help="Import secrets from vkv JSON or YAML output",
        description='Read vkv output from --file or stdin ("-") and write it to a KV engine.',
    )
    import_parser.add_argument("source", nargs="?", help='"-" to read from stdin')
    import_parser.add_argument(
        "-p", "--path", default=env_str(env_name("import", "path")),
        help="destination engine path (env: VKV_IMPORT_PATH)",
    )
    import_parser.add_argument(
        "-e", "--engine-path", default=env_str(env_name("import", "engine_path")),
        help="destination engine path containing '/' (env: VKV_IMPORT_ENGINE_PATH)",
    )
    import_parser.add_argument(
        "-f", "--file", default=env_str(env_name("import", "file")),
        help='file to read from, "-" for stdin (env: VKV_IMPORT_FILE)',
    )
    _add_flag(import_parser, "--force", env_name("import", "force"), "overwrite existing engines and secrets")
    _add_flag(import_parser, "--dry-run", env_name("import", "dry_run"), "preview the result without writing")
    _add_flag(import_parser, "--silent", env_name("import", "silent"), "do not print progress or the result")
    _add_flag(import_parser, "--show-values", env_name("import", "show_values"), "do not mask values")
    import_parser.add_argument(
        "--max-value-length",
        type=int,
        default=env_int(env_name("import", "max_value_length"), 12),
        help="maximum number of characters of a masked value (env: VKV_IMPORT_MAX_VALUE_LENGTH)",
    )
    import_parser.set_defaults(handler=import_command)

    # Snapshot commands
    snapshot_parser = subparsers.add_parser("snapshot", help="Save or restore snapshots")
    snapshot_sub = snapshot_parser.add_subparsers(dest="snapshot_command")
    save_parser = snapshot_sub.add_parser(
        "save", help="Save all engines of all namespaces to a directory"
    )
    save_parser.add_argument(
        "-n", "--ns", dest="namespace", default=env_str(env_name("snapshot_save", "ns"), ""),
        help="namespace to start from (env: VKV_SNAPSHOT_SAVE_NS)",
    )
    save_parser.add_argument(
        "-d", "--destination",
        default=env_str(env_name("snapshot_save", "destination"), DEFAULT_SNAPSHOT_DIR),
        help=f"snapshot directory (default: {DEFAULT_SNAPSHOT_DIR}, env: VKV_SNAPSHOT_SAVE_DESTINATION)",
    )
    _add_flag(save_parser, "--skip-errors", env_name("snapshot_save", "skip_errors"), "skip paths that cannot be read")
    save_parser.set_defaults(handler=snapshot_save_command)

    restore_parser = snapshot_sub.add_parser("restore", help="Restore a snapshot directory")
    restore_parser.add_argument(
        "-s", "--source",
        default=env_str(env_name("snapshot_restore", "source"), DEFAULT_SNAPSHOT_DIR),
        help=f"snapshot directory (default: {DEFAULT_SNAPSHOT_DIR}, env: VKV_SNAPSHOT_RESTORE_SOURCE)",
    )
    restore_parser.set_defaults(handler=snapshot_restore_command)

    # List commands
    list_parser = subparsers.add_parser("list", help="List namespaces or engines")
    list_sub = list_parser.add_subparsers(dest="list_command")
    list_ns = list_sub.add_parser("namespaces", help="List all namespaces")
    _add_list_arguments(list_ns, "list_namespaces", engines=False)
    list_ns.set_defaults(handler=namespaces_command)
    list_engines = list_sub.add_parser("engines", help="List KV engines")
    _add_list_arguments(list_engines, "list_engines", engines=True)
    list_engines.set_defaults(handler=engines_command)

    # Find commands
    find_parser = subparsers.add_parser("find", help="Search secrets, engines or namespaces")
    find_sub = find_parser.add_subparsers(dest="find_command")
    find_secrets_parser = find_sub.add_parser(
        "secrets", help="Search namespaces, engines, secret names and values"
    )
    find_secrets_parser.add_argument(
        "-p", "--pattern", default=env_str(env_name("find", "pattern")),
        help="regular expression to search for (env: VKV_FIND_PATTERN)",
    )
    _add_flag(find_secrets_parser, "--no-header", env_name("find", "no_header"), "do not print the search header")
    _add_flag(find_secrets_parser, "--print-url", env_name("find", "print_url"), "print the UI link of every match")
    _add_flag(find_secrets_parser, "--no-match-kind", env_name("find", "no_match_kind"), "do not print the kind of match")
    find_secrets_parser.set_defaults(handler=find_secrets_command)
    find_ns = find_sub.add_parser("namespaces", help="Find namespaces matching a regex")
    _add_list_arguments(find_ns, "find_namespaces", engines=False)
    find_ns.set_defaults(handler=namespaces_command)
    find_engines = find_sub.add_parser("engines", help="Find KV engines matching a regex")
    _add_list_arguments(find_engines, "find_engines", engines=True)
    find_engines.set_defaults(handler=engines_command)

    # Server command
    server_parser = subparsers.add_parser(
        "server", help="Serve the export of a path over HTTP at /export"
    )
    server_parser.add_argument(
        "-P", "--port", type=int, default=env_int(env_name("server", "port"), 8080),
        help="listen port (default: 8080, env: VKV_SERVER_PORT)",
    )
    server_parser.add_argument(
        "--host", default=env_str(env_name("server", "host"), "0.0.0.0"),
        help="listen address (env: VKV_SERVER_HOST)",
    )
    server_parser.add_argument(
        "-p", "--path", default=env_str(env_name("server", "path")),
        help="KV engine path to serve (env: VKV_SERVER_PATH)",
    )
    server_parser.add_argument(
        "-e", "--engine-path", default=env_str(env_name("server", "engine_path")),
        help="engine path containing '/' (env: VKV_SERVER_ENGINE_PATH)",
    )
    _add_flag(server_parser, "--skip-errors", env_name("server", "skip_errors"), "skip paths that cannot be read")
    server_parser.set_defaults(handler=server_command)

    # Version command
    version_parser = subparsers.add_parser("version", help="Print the version")
    version_parser.set_defaults(handler=version_command)

    return parser


def mode_arguments(mode: Optional[str]) -> List[str]:
    """Translate ``VKV_MODE`` into the subcommand to run when none is given.

    Raises:
        BadOptionComboError: If the mode is unknown
    """
    if not mode:
        return []
    try:
        return list(MODE_COMMANDS[mode.strip().upper()])
    except KeyError:
        raise BadOptionComboError(
            f"invalid value for VKV_MODE: {mode!r} (valid options: {', '.join(MODE_COMMANDS).lower()})"
        ) from None


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    session = Session()
    try:
        parser = build_parser()
        argv = list(sys.argv[1:] if argv is None else argv)
        args = parser.parse_args(argv)
        if args.command is None:
            mode_argv = mode_arguments(env_str("VKV_MODE"))
            if mode_argv:
                args = parser.parse_args(argv + mode_argv)
        handler: Optional[Callable[..., int]] = getattr(args, "handler", None)
        if handler is None:
            parser.print_help(sys.stderr)
            return 1

        setup_logging(level=args.log_level, fmt=args.log_format)
        return handler(args, session)
    except VkvError as exc:
        logger.debug(
            "command failed",
            extra={"event_type": "command_failed", "extra_data": {"kind": get_error_kind(exc), **exc.details}},
        )
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except ValidationError as exc:
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        print(f"ERROR: invalid options: {messages}", file=sys.stderr)
        return 1
    except Exception as exc:
        logger.debug("unexpected error", exc_info=True)
        print(f"ERROR: {wrap_exception(exc)}", file=sys.stderr)
        return 1
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
