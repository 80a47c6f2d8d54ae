import traceback

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.router import api_router
from app.core.config import settings
from app.core.exceptions import AppError
from app.core.logging import logger
from app.services.storage_service import LocalStorageService, storage_service


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description=settings.DESCRIPTION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        debug=settings.DEBUG,
    )

    # Set up CORS middleware
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API router
    application.include_router(api_router, prefix=settings.API_V1_STR)

    # Serve uploaded images locally in dev mode only
    if isinstance(storage_service, LocalStorageService):
        from fastapi.staticfiles import StaticFiles

        application.mount(
            "/uploads", StaticFiles(directory=storage_service.upload_root), name="uploads"
        )
        logger.info(f"Dev mode: serving uploads from {storage_service.upload_root}")

    # Register exception handlers
    register_exception_handlers(application)

    return application


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        """Domain errors: the caller can act on ``error`` and ``field``."""
        logger.warning(f"{request.method} {request.url.path} → {exc.code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler - logs details to console."""

        logger.error(f"Exception: {exc.__class__.__name__}: {exc}")

        if settings.DEBUG:
            logger.error(
                f"Request: {request.method} {request.url}\n"
                f"   Path Params: {request.path_params}\n"
                f"   Query Params: {dict(request.query_params)}\n"
                f"   Client: {request.client.host if request.client else 'unknown'}\n"
                f"   Traceback:\n{traceback.format_exc()}"
            )

        # Clean response to client
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "INTERNAL_ERROR",
                "message": str(exc) if settings.DEBUG else "An unexpected error occurred",
                "field": None,
            },
        )


app = create_application()


@app.on_event("startup")
async def startup_event():
    """Create missing tables and log startup information."""
    from app.core.database import init_models

    await init_models()

    logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION}")
    logger.info("Documentation: http://127.0.0.1:8000/docs")
    logger.info("Database connected & tables created")
    if settings.DEBUG:
        logger.warning("DEBUG mode is ON - detailed errors will be logged to console")


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - health check."""
    return {
        "message": "Welcome to the Kabsu.me API",
        "version": settings.VERSION,
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
