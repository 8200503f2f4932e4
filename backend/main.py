from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from datetime import datetime, timezone
import logging
import os

from backend.core.config import settings

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Import core components
from backend.core.database import create_db_and_tables
from backend.core.exceptions import (
    AuthenticationError,
    MeetingProviderError,
    PaymentGatewayError,
    ResourceNotFoundError,
)
from backend.core.firebase_config import initialize_firebase_app, is_firebase_configured
from backend.core.middleware import edge_middleware
from backend.routes import api_router


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="API for a multi-tenant e-learning platform: courses, payments, certificates, live classes and white-labelling.",
    version="1.0.0",
    docs_url=f"{settings.API_PREFIX}/docs",
    redoc_url=None,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
)

# --- Event Handlers ---
@app.on_event("startup")
async def startup_event():
    logger.info(f"Application startup ({settings.ENVIRONMENT})...")
    if is_firebase_configured():
        try:
            initialize_firebase_app()
        except Exception as e:
            # App-issued tokens keep working; only Firebase ID tokens are refused
            logger.error(f"Firebase initialization failed; Firebase ID tokens will be rejected: {e}", exc_info=True)
    else:
        logger.info("GOOGLE_APPLICATION_CREDENTIALS not set; accepting app-issued tokens only.")

    # Production schemas are managed with Alembic
    if not settings.IS_PRODUCTION:
        create_db_and_tables()
        logger.info("Database tables checked/created.")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown...")

# --- Middleware ---
# Security headers, rate limiting and the auth gate run on every request
app.middleware("http")(edge_middleware)

# Added last so CORS wraps the edge middleware and answers preflight requests itself
logger.info(f"Allowed CORS origins: {settings.CORS_ALLOWED_ORIGINS}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Error Handlers ---
# Domain errors raised by crud/services map onto status codes here, so routes only handle the happy path.
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", [])[1:])
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": f"{field}: {message}" if field else message, "errors": errors},
    )

@app.exception_handler(AuthenticationError)
async def authentication_exception_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": exc.message},
        headers={"WWW-Authenticate": "Bearer"},
    )

@app.exception_handler(ResourceNotFoundError)
async def not_found_exception_handler(request: Request, exc: ResourceNotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message})

@app.exception_handler(PaymentGatewayError)
@app.exception_handler(MeetingProviderError)
async def provider_exception_handler(request: Request, exc):
    logger.error(f"Provider {exc.provider or 'unknown'} failed for {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": exc.message, "provider": exc.provider},
    )

@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.info(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

# Global Error Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception for request {request.method} {request.url}: {exc}", exc_info=True)
    # Avoid exposing detailed error messages in production for generic exceptions
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected internal server error occurred."},
    )

# --- API Routers ---
app.include_router(api_router)

@app.get(f"{settings.API_PREFIX}/health", tags=["Root"])
async def health_check():
    """Liveness probe."""
    return {"status": "ok", "environment": settings.ENVIRONMENT, "timestamp": datetime.now(timezone.utc).isoformat()}

@app.get("/", tags=["Root"])
async def read_root():
    """
    Root endpoint to check if the API is running.
    """
    return {"message": f"Welcome to the {settings.PROJECT_NAME}! Navigate to {settings.API_PREFIX}/docs for API documentation."}

# --- Main execution (for development) ---
if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")
    log_level = os.getenv("UVICORN_LOG_LEVEL", "info")

    logger.info(f"Starting Uvicorn server on {host}:{port} with log level {log_level}")
    uvicorn.run(app, host=host, port=port, log_level=log_level)
