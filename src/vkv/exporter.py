"""Export of a secret subtree in any output format."""

from typing import Optional

from .client import StoreClient
from .config import ExportOptions
from .exceptions import ForbiddenError, NotFoundError
from .logging import get_logger
from .printer import OutputFormat, RenderOptions, SecretPrinter, collect_capabilities, parse_format
from .projection import handle_engine_path
from .walker import Walker, secret_map

logger = get_logger(__name__)


def build_render_options(options: ExportOptions, fmt: Optional[str] = None) -> RenderOptions:
    """Translate export options into validated render options.

    Args:
        options: Export command options
        fmt: Format overriding ``options.format``

    Raises:
        BadOptionComboError: On conflicting options or an unknown format
    """
    options.validate_combination()
    output_format = parse_format(fmt or options.format)
    return RenderOptions(
        format=output_format,
        only_keys=options.only_keys,
        only_paths=options.only_paths,
        show_values=options.show_values,
        max_value_length=options.max_value_length,
        template_source=options.template_text() if output_format == OutputFormat.TEMPLATE else None,
        show_version=options.show_version,
        show_metadata=options.show_metadata,
        include_path=options.include_path,
        upper=options.upper,
    ).resolve()


def export_secrets(
    client: StoreClient, options: ExportOptions, fmt: Optional[str] = None
) -> str:
    """Walk the configured subtree and render it.

    Options are validated before the store is contacted.

    Returns:
        The rendered output
    """
    render_options = build_render_options(options, fmt)
    engine, sub_path = handle_engine_path(options.engine_path, options.path)

    walker = Walker(client, skip_errors=options.skip_errors)
    secrets = secret_map(engine, sub_path, walker.walk_path(engine, sub_path))

    capabilities = {}
    if render_options.format == OutputFormat.POLICY:
        capabilities = collect_capabilities(secrets, client.capabilities)

    engines = {}
    if render_options.format == OutputFormat.BASE:
        try:
            engines[engine.strip("/")] = client.engine_info(engine)
        except (ForbiddenError, NotFoundError) as e:
            logger.debug(f"no engine facts for {engine!r}: {e}", extra={"engine": engine})

    printer = SecretPrinter(
        render_options, leaves=walker.leaves, capabilities=capabilities, engines=engines
    )
    return printer.render(secrets)
