import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from passport import __version__
from passport.core.config import get_settings
from passport.core.errors import WorkflowError
from passport.core.logger import configure_logging
from passport.api.routers import approvals, auth, roles
from passport.api.schemas.common import ErrorResponse
from passport.api.middleware.audit import RequestLoggingMiddleware
from passport.api.middleware.rate_limit import RateLimitMiddleware

settings = get_settings()
configure_logging(settings)
logger = logging.getLogger(__name__)

# Stable error kinds to HTTP status codes
ERROR_STATUS_CODES = {
    "validation_error": 400,
    "authorization_error": 403,
    "not_found": 404,
    "conflict": 409,
    "transaction_error": 500,
}

app = FastAPI(
    title=settings.app_name,
    description="Aluminium supply-chain passport approval workflow",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.rate_limit_enabled:
    app.add_middleware(RateLimitMiddleware)

# Request logging - added last so it wraps everything
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(exc.kind, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=exc.kind, detail=exc.message, code=status_code).model_dump(),
    )


# Include routers
app.include_router(auth.router, prefix="/api")
app.include_router(approvals.router, prefix="/api")
app.include_router(roles.router, prefix="/api")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": __version__}


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else None,
    }
