"""FastAPI web application for the workspace hierarchy engine.

This module defines the FastAPI application, registers the error
handlers and includes the API routes. It also provides a convenience
function to launch the server via Uvicorn.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

from .. import __version__
from ..sources.base import FetchError
from ..utils.logging import get_logger
from .routes import router

logger = get_logger(__name__)

app = FastAPI(
    title="Workspace Hierarchy Engine",
    description="Workspace trees, member directories, delegations and assignments",
    version=__version__,
)

app.include_router(router)


@app.exception_handler(FetchError)
async def fetch_error_handler(request: Request, exc: FetchError) -> JSONResponse:
    logger.error(f"Backend fetch failed for {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc), "table": exc.table})


def start_server(host: str = "127.0.0.1", port: int = 8000, reload: bool = False) -> None:
    """Start the Uvicorn web server.

    Parameters
    ----------
    host: str
        Host to bind the server to.
    port: int
        Port to listen on. Defaults to 8000.
    reload: bool
        Whether to enable auto-reload. Useful during development.
    """
    uvicorn.run(
        "whe.web.app:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    start_server()
