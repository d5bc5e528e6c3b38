"""HTTP endpoint serving the export of a configured subtree."""

from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, status
from fastapi.responses import PlainTextResponse

from . import __version__
from .client import StoreClient
from .config import ExportOptions, ServerOptions
from .exceptions import (
    BadOptionComboError,
    BadPatternError,
    ForbiddenError,
    NotFoundError,
    VkvError,
)
from .exporter import export_secrets
from .logging import get_logger

logger = get_logger(__name__)

Renderer = Callable[[Optional[str]], str]


def create_app(render: Renderer) -> FastAPI:
    """Build the application.

    Args:
        render: Callable returning the export for an optional format name;
            the default export format is used when it receives None

    Returns:
        FastAPI application with ``GET /export``
    """
    app = FastAPI(
        title="vkv",
        version=__version__,
        description="Serves the export of a Vault KV subtree as plain text.",
    )

    @app.get("/export", response_class=PlainTextResponse, summary="Export the configured secrets")
    def get_export(format: Optional[str] = Query(None)) -> PlainTextResponse:
        """Render the configured subtree, optionally in another format."""
        try:
            body = render(format)
        except (BadOptionComboError, BadPatternError) as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        except NotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except ForbiddenError as exc:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
        except VkvError as exc:
            logger.error(f"export failed: {exc}", extra={"event_type": "export_failed"})
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        return PlainTextResponse(body)

    return app


def build_app(client: StoreClient, options: ServerOptions) -> FastAPI:
    """Build the application for a store client and server options."""
    options.validate_combination()
    export_options = ExportOptions(
        path=options.path,
        engine_path=options.engine_path,
        format="export",
        show_values=True,
        max_value_length=-1,
        skip_errors=options.skip_errors,
    )
    return create_app(lambda fmt: export_secrets(client, export_options, fmt))


def serve(client: StoreClient, options: ServerOptions) -> None:
    """Run the HTTP server until interrupted."""
    app = build_app(client, options)
    logger.info(f"serving on {options.host}:{options.port}", extra={"event_type": "server_started"})
    uvicorn.run(app, host=options.host, port=options.port, log_level="warning")
