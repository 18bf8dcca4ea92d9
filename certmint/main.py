"""certmint FastAPI application."""
import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.authentication import AuthenticationMiddleware

from certmint import __version__
from certmint.api import auth, certificates, health, mint, profile, verify
from certmint.auth.backend import BearerTokenBackend, on_auth_error
from certmint.config import AUTH_EXEMPT_PATHS
from certmint.context import ServiceContext, build_context
from certmint.core.exceptions import CertMintError, RateLimitedError
from certmint.core.logging import configure_logging
from certmint.db.session import init_database

log = logging.getLogger("certmint")


async def _rate_limit_cleanup_task(context: ServiceContext):
    """Periodically drop expired login rate-limit entries."""
    while True:
        await asyncio.sleep(context.settings.rate_limit_cleanup_seconds)
        try:
            count = await context.rate_limiter.cleanup()
            if count > 0:
                log.debug(f"Rate limit cleanup: removed {count} expired clients")
        except Exception as e:
            log.error(f"Rate limit cleanup error: {e}")


def create_app(context: Optional[ServiceContext] = None) -> FastAPI:
    """Build the application.

    With no context, one is built from configuration at startup and closed
    at shutdown. A context passed in is owned by the caller.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("Starting certmint service...")
        owned = app.state.context is None
        if owned:
            app.state.context = build_context()
        try:
            init_database(app.state.context.engine)
        except Exception as e:
            log.error(f"Failed to initialize database: {e}")
            raise

        context = app.state.context
        app.state.rate_limit_cleanup = asyncio.create_task(_rate_limit_cleanup_task(context))
        log.info(
            f"Rate limit cleanup task started (interval: {context.settings.rate_limit_cleanup_seconds}s)"
        )
        log.info("certmint service started")

        yield

        log.info("Shutting down certmint service...")
        app.state.rate_limit_cleanup.cancel()
        try:
            await app.state.rate_limit_cleanup
        except asyncio.CancelledError:
            pass
        log.info("Rate limit cleanup task stopped")
        if owned:
            await app.state.context.aclose()
        log.info("certmint service stopped")

    app = FastAPI(
        title="certmint",
        version=__version__,
        description="Certificate verification and minting service",
        lifespan=lifespan,
    )
    app.state.context = context

    # -------------------------------------------------------------------------
    # Authentication Middleware
    # -------------------------------------------------------------------------

    app.add_middleware(
        AuthenticationMiddleware,
        backend=BearerTokenBackend(exempt_paths=AUTH_EXEMPT_PATHS),
        on_error=on_auth_error,
    )

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        """Log all requests with timing."""
        start = time.time()
        response = await call_next(request)
        duration_ms = int((time.time() - start) * 1000)

        log.info(
            f"request_complete status={response.status_code} duration_ms={duration_ms}",
            extra={
                "request_id": request.headers.get("X-Request-ID", "-"),
                "route": request.url.path,
                "method": request.method,
                "status": response.status_code,
            },
        )
        return response

    # -------------------------------------------------------------------------
    # Error Handlers
    # -------------------------------------------------------------------------

    @app.exception_handler(CertMintError)
    async def certmint_error_handler(request: Request, exc: CertMintError):
        if exc.status_code >= 500:
            log.warning(f"{exc.code} on {request.url.path}: {exc.message}")
        headers = None
        if isinstance(exc, RateLimitedError) and exc.retry_after:
            headers = {"Retry-After": str(exc.retry_after)}
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "detail": f"Validation error: {field}: {message}" if field else f"Validation error: {message}",
            },
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        log.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "detail": "Internal server error"},
        )

    # -------------------------------------------------------------------------
    # Routes
    # -------------------------------------------------------------------------

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(profile.router)
    app.include_router(certificates.router)
    app.include_router(verify.router)
    app.include_router(mint.router)

    @app.get("/version")
    def version():
        """Return service version and build commit."""
        git_sha = os.getenv("GIT_SHA", "unknown")
        result = {"version": __version__, "git_sha": git_sha}
        if git_sha != "unknown":
            result["short_sha"] = git_sha[:7]
        return result

    return app


configure_logging()
app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    from certmint.config import SERVICE_PORT

    uvicorn.run(app, host="0.0.0.0", port=SERVICE_PORT, log_config=None)
