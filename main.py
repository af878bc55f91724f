from fastapi import FastAPI, HTTPException, Request, Depends, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import structlog
import io
import time
from contextlib import asynccontextmanager

from models import BatchResponse, ErrorResponse, HealthResponse
from services import TransactionService, get_transaction_service
from sources import iter_csv_records
from reports import write_csv_report
from errors import SourceError
from config import Settings, get_settings
from logging_setup import configure_logging

settings = get_settings()
configure_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger()

# Rate limiting
limiter = Limiter(key_func=get_remote_address)

# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Payments Engine API", version=settings.app_version)
    yield
    # Shutdown
    logger.info("Shutting down Payments Engine API")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Replays a CSV stream of deposits, withdrawals and disputes into final client accounts",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)

# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None
    )

    response = await call_next(request)

    process_time = time.time() - start_time
    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time=round(process_time, 4)
    )

    return response

# Dependency injection: every batch gets its own store and ledger
def get_service(settings: Settings = Depends(get_settings)) -> TransactionService:
    return get_transaction_service(settings)

# Health check endpoint
@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check API health"
)
async def health_check(settings: Settings = Depends(get_settings)):
    return HealthResponse(status="healthy", version=settings.app_version)

def _check_batch_size(size: int, limit: int) -> None:
    if size > limit:
        logger.warning("Batch too large", size=size, limit=limit)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Request body too large"
        )

# Batch processing endpoint
@app.post(
    "/transactions/batch",
    response_model=BatchResponse,
    summary="Process Transaction Batch",
    description="Replay a CSV body (type, client, tx, amount) and return the final client accounts",
    responses={
        200: {"description": "Batch processed; rejected records are counted, not fatal"},
        400: {"description": "Body is not UTF-8 or the CSV header is unusable"},
        413: {"description": "Body exceeds the configured size limit"},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Internal server error"}
    }
)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def process_batch(
    request: Request,
    response_format: str = Query("json", alias="format", pattern="^(json|csv)$", description="Response format"),
    service: TransactionService = Depends(get_service),
    settings: Settings = Depends(get_settings)
):
    # Declared sizes are refused before reading; chunked bodies are checked once read.
    declared_size = request.headers.get("content-length", "")
    if declared_size.isdigit():
        _check_batch_size(int(declared_size), settings.max_request_size)

    body = await request.body()
    _check_batch_size(len(body), settings.max_request_size)

    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Request body must be UTF-8 encoded CSV")

    try:
        await run_in_threadpool(service.process_all, iter_csv_records(io.StringIO(text)))
    except SourceError as e:
        logger.warning("Batch rejected", error=str(e))
        raise HTTPException(status_code=400, detail=str(e))

    summaries = service.summaries()
    logger.info("Batch processed", accounts_count=len(summaries), **service.stats.as_dict())

    if response_format == "csv":
        buffer = io.StringIO()
        write_csv_report(summaries, buffer)
        return PlainTextResponse(buffer.getvalue(), media_type="text/csv")

    return BatchResponse(accounts=summaries, **service.stats.as_dict())

# Global exception handler
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            detail=exc.detail,
            error_code=f"HTTP_{exc.status_code}"
        ).model_dump(mode="json")
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail="Internal server error",
            error_code="INTERNAL_ERROR"
        ).model_dump(mode="json")
    )

# Root endpoint
@app.get("/", include_in_schema=False)
async def root():
    return {"message": settings.app_name, "docs": "/docs"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
