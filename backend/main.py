from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from api.v1 import auth, users, wallet, admin
from core.config import settings
from core.errors import LedgerError
from db.base import initialize_database
from db.store import LedgerStore
from services.identity_service import IdentityProvider
from typing import Optional
import logging
from utils.logging_config import configure_logging, RequestContextMiddleware

logger = logging.getLogger("refearn")


def create_app(store: Optional[LedgerStore] = None) -> FastAPI:
    """Build the API around an explicit ledger store.

    When no store is passed, one is created from settings.DATABASE_URL on startup
    and disposed on shutdown; a passed-in store is owned by the caller.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
    )
    app.state.store = store
    app.state.identity = IdentityProvider(store) if store is not None else None

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} at {request.url.path}: {exc.message}")
        else:
            logger.info(f"{exc.code} at {request.url.path}: {exc.message}")
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
            headers=headers,
        )

    # Global exception handler to ensure 500s for unexpected errors
    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error at {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    app.add_middleware(GZipMiddleware, minimum_size=500)

    # Add logging context middleware to capture user_id, API path and request id
    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router, tags=["Authentication"])
    app.include_router(users.router, tags=["Users"])
    app.include_router(wallet.router, tags=["Wallet"])
    app.include_router(admin.router, tags=["Admin"])

    @app.on_event("startup")
    async def startup_store():
        if app.state.store is None:
            app.state.store = LedgerStore.from_url()
            app.state.identity = IdentityProvider(app.state.store)
            app.state.owns_store = True
        await initialize_database(app.state.store)
        logger.info("Application startup complete")

    @app.on_event("shutdown")
    async def shutdown_store():
        if getattr(app.state, "owns_store", False):
            await app.state.store.dispose()
            logger.info("Disposed SQL engine")
        logger.info("Application shutdown complete")

    @app.get("/")
    async def root():
        return {"message": settings.APP_NAME, "version": settings.VERSION}

    @app.get("/health")
    async def health_check():
        if app.state.store is not None and await app.state.store.ping():
            return {"status": "healthy", "database": "sql_connected"}
        logger.warning("Health SQL check failed")
        return {"status": "degraded", "database": "sql_unavailable"}

    return app


# Configure logging with date-based files and TTL retention
configure_logging("refearn")

app = create_app()
