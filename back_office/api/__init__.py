"""
Back Office API Application Factory
"""

import time
from typing import Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from .. import __version__
from ..bank import BackOffice
from ..config import get_config
from ..errors import BackOfficeError
from ..logging_config import get_logger, log_action, setup_logging
from .accounts import router as accounts_router
from .admin import router as admin_router
from .dependencies import get_back_office
from .lockers import router as lockers_router
from .staff_requests import router as requests_router


STATUS_BY_KIND = {
    "InvalidArgument": status.HTTP_400_BAD_REQUEST,
    "InvalidAmount": status.HTTP_400_BAD_REQUEST,
    "InsufficientFunds": status.HTTP_400_BAD_REQUEST,
    "Unauthorized": status.HTTP_401_UNAUTHORIZED,
    "NotFound": status.HTTP_404_NOT_FOUND,
    "Conflict": status.HTTP_409_CONFLICT,
    "InvalidState": status.HTTP_409_CONFLICT,
    "StorageError": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

logger = get_logger("back_office.api")


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"Invalid {location}: {first.get('msg')}" if location else f"Invalid request: {first.get('msg')}"


def create_app(back_office: Optional[BackOffice] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        back_office: BackOffice to serve; by default one is built lazily from
            configuration on the first request
    """
    config = get_config()

    app = FastAPI(
        title="Back Office Banking API",
        description="Accounts, deposits and withdrawals, lockers and staff approvals",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    if back_office is not None:
        app.dependency_overrides[get_back_office] = lambda: back_office

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        log_action(
            logger, "info", f"{request.method} {request.url.path}",
            action="http_request", path=request.url.path,
            extra={
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2)
            }
        )
        return response

    @app.exception_handler(BackOfficeError)
    async def back_office_error_handler(request: Request, exc: BackOfficeError):
        status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
        if status_code >= 500:
            logger.error("Request failed: %s", exc.message, exc_info=exc)
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"kind": "InvalidArgument", "msg": _validation_message(exc)}
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"kind": "ServerError", "msg": "Server error"}
        )

    app.include_router(accounts_router, prefix="/api/accounts", tags=["Accounts"])
    app.include_router(lockers_router, prefix="/api/locker", tags=["Lockers"])
    app.include_router(requests_router, prefix="/api/requests", tags=["Requests"])
    app.include_router(admin_router, prefix="/api", tags=["Admin"])

    @app.get("/health")
    def health_check(system: BackOffice = Depends(get_back_office)):
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "back_office_api",
            "version": __version__,
            "counts": system.health()
        }

    @app.get("/")
    def get_api_info():
        """Get API information"""
        return {
            "name": "Back Office Banking API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "accounts": "/api/accounts",
                "lockers": "/api/locker/access",
                "requests": "/api/requests",
                "wipe": "/api/wipe",
            }
        }

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    setup_logging(config.log_level, config.log_format)
    uvicorn.run(
        "back_office.api:app",
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level=config.log_level.lower()
    )


# Create the app instance for uvicorn
app = create_app()
