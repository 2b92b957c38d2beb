"""
Storefront Interactions - Main FastAPI Application

Aggregates user engagement signals for personalization:
- One evolving record per (user, product) pair
- Precedence rules: a purchase is never downgraded by later views or cart edits
- Quantity accumulation across repeated add-to-cart and purchase events
- Purchase batches with per-line results
- Proxy to the external recommendation scoring service
"""

from fastapi import FastAPI, Depends, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.orm import Session
from typing import Optional

from .config import settings
from .api import api_router
from .services.recommendations import RecommendationCache
from .utils.database import init_db, get_db
from .utils.dependencies import get_recommendation_cache
from .utils.exceptions import StorefrontError, ValidationError
from .utils.logging import setup_logging, get_logger, configure_uvicorn_logging
from .utils.metrics import setup_metrics
from .utils.rate_limit import limiter

# Setup structured logging
setup_logging(log_level=settings.LOG_LEVEL)
configure_uvicorn_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""

    logger.info("Starting Storefront Interactions", version=settings.VERSION)

    logger.info("Initializing database")
    init_db()

    logger.info("Storefront Interactions started successfully")

    yield

    logger.info("Shutting down Storefront Interactions")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
    # Storefront Interactions API

    Records a single evolving engagement signal per (user, product) pair.

    ## Signals

    - `view`: weakest signal, resets the stored quantity
    - `add_to_cart`: accumulates cart quantity
    - `purchase`: strongest signal, sticky, accumulates purchased quantity
    - `review`: recorded on the purchase path with `reviewStars`
    - `search`: recorded on the view path with `searchQuery`
    """,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "products", "description": "Product catalog used to validate interactions"},
        {"name": "interactions", "description": "Interaction ingestion and aggregated records"},
        {"name": "recommendations", "description": "Proxy to the recommendation scoring service"},
    ]
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Setup Prometheus metrics
setup_metrics(app)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    """Render domain errors with their status code"""

    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            method=request.method,
            url=str(request.url),
            error=exc.message,
            details=exc.details,
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "details": exc.details},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report malformed input as 400 with one entry per offending field"""

    return await storefront_error_handler(request, ValidationError.from_errors(exc.errors()))


# Middleware for logging requests
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests"""
    logger.info(
        "Request received",
        method=request.method,
        url=str(request.url),
        client=request.client.host if request.client else None
    )

    response = await call_next(request)

    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code
    )

    return response


@app.get("/", tags=["root"])
def root():
    """Root endpoint"""
    return {
        "message": "Storefront Interactions API",
        "version": settings.VERSION,
        "docs": "/docs",
        "status": "operational"
    }


@app.get("/health", tags=["root"], status_code=status.HTTP_200_OK)
def health_check(
    db: Session = Depends(get_db),
    cache: Optional[RecommendationCache] = Depends(get_recommendation_cache),
):
    """Health check endpoint"""

    redis_healthy = cache.health_check() if cache is not None else None

    db_healthy = True
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        db_healthy = False

    overall_healthy = db_healthy and redis_healthy is not False

    return {
        "status": "healthy" if overall_healthy else "degraded",
        "redis": {True: "connected", False: "disconnected", None: "disabled"}[redis_healthy],
        "database": "connected" if db_healthy else "disconnected",
        "version": settings.VERSION
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storefront.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
