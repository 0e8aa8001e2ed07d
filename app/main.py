"""
FastAPI application for audio transcription
Upload endpoint, health check and error handling
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from .audio.media import MediaTool
from .config import get_settings
from .exceptions import TranscribeServiceError
from .utils.files import sweep_stale_files
from .web.routers.transcribe import router as transcribe_router

logging.basicConfig(format="%(message)s", level=get_settings().log_level)

# Setup structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger("transcribe.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    settings = get_settings()
    logger.info("Starting transcription service", version="1.0.0", environment=settings.environment)

    settings.create_directories()
    if settings.cleanup_on_startup:
        removed = sweep_stale_files(settings.upload_dir, settings.stale_file_max_age_seconds)
        logger.info("Startup sweep completed", removed=len(removed))

    tools = MediaTool().is_available()
    if not all(tools.values()):
        logger.warning("Media tools missing, reduction of large files will fail", **tools)

    yield

    logger.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title="Audio Transcribe Service",
    description="Transcribes uploaded audio with OpenAI Whisper",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if get_settings().is_development else None,
    redoc_url="/redoc" if get_settings().is_development else None
)

app.include_router(transcribe_router)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests"""
    start_time = datetime.utcnow()

    # Generate request ID
    request_id = f"{int(start_time.timestamp())}-{id(request)}"

    logger.info(
        "Request started",
        request_id=request_id,
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None
    )

    try:
        response = await call_next(request)

        duration = (datetime.utcnow() - start_time).total_seconds()

        logger.info(
            "Request completed",
            request_id=request_id,
            status_code=response.status_code,
            duration_seconds=round(duration, 3)
        )

        return response

    except Exception as e:
        duration = (datetime.utcnow() - start_time).total_seconds()

        logger.error(
            "Request failed",
            request_id=request_id,
            error=str(e),
            duration_seconds=round(duration, 3)
        )

        raise


# Error handlers
@app.exception_handler(TranscribeServiceError)
async def transcribe_exception_handler(request: Request, exc: TranscribeServiceError):
    """Map classified pipeline failures to their HTTP status"""
    logger.error(
        "Transcription request failed",
        error_type=type(exc).__name__,
        error=str(exc),
        cause=repr(exc.cause) if exc.cause else None,
        status_code=exc.status_code
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.user_message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions"""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed form data is an invalid request"""
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={"error": "Failed to transcribe audio. Please try again."}
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """Report whether the media tools needed for large files are present"""
    tools = MediaTool().is_available()
    healthy = all(tools.values())

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            **tools,
            "timestamp": datetime.utcnow().isoformat()
        }
    )


# Upload page, mounted last so API routes take precedence
if os.path.isdir(get_settings().static_dir):
    app.mount("/", StaticFiles(directory=get_settings().static_dir, html=True), name="static")


def run():
    """Console entry point"""
    import uvicorn

    settings = get_settings()
    uvicorn.run("app.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
