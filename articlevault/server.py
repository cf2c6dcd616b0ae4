"""
ArticleVault API Server

FastAPI application providing endpoints for:
- Article management (save, list, update, delete)
- Duplicate detection
- Snapshots (PDF, HTML, EPUB, Markdown, text) with cloud upload
- Batch snapshots and bulk operations
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import config
from .dependencies import build_dependencies
from .exceptions import ArticleVaultError
from .rate_limit import setup_rate_limiting
from .routes import articles_router, misc_router, previews_router
from .schemas import failure

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup application resources."""
    # Startup - skip if already initialized (e.g., by tests)
    owns_deps = getattr(app.state, "deps", None) is None
    if owns_deps:
        app.state.deps = build_dependencies(config)
        await app.state.deps.job_queue.start()
        logger.info(
            f"ArticleVault {__version__} started (KV: {config.KV_BACKEND}, "
            f"browser rendering: {app.state.deps.browser_pool is not None})"
        )

    yield

    # Shutdown
    if owns_deps:
        deps = app.state.deps
        await deps.job_queue.stop()
        if deps.browser_pool is not None:
            try:
                await deps.browser_pool.close()
            except Exception as e:
                logger.warning(f"Error stopping browser pool: {e}")
        app.state.deps = None


app = FastAPI(
    title="ArticleVault API",
    version=__version__,
    lifespan=lifespan
)


# ─────────────────────────────────────────────────────────────
# Error envelope
# ─────────────────────────────────────────────────────────────

@app.exception_handler(ArticleVaultError)
async def articlevault_error_handler(request: Request, exc: ArticleVaultError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=failure(exc.code, exc.message, exc.details),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=failure("INVALID_INPUT", "Invalid request", {"errors": errors}),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
    return JSONResponse(
        status_code=exc.status_code,
        content=failure(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=failure("INTERNAL_ERROR", "An unexpected error occurred"),
    )


setup_rate_limiting(app)

# Include routers
app.include_router(misc_router)
app.include_router(previews_router)
app.include_router(articles_router)


def main():
    """Run the API with uvicorn."""
    uvicorn.run("articlevault.server:app", host="127.0.0.1", port=config.PORT)


if __name__ == "__main__":
    main()
