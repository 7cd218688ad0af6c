"""
Certification Prep Session Engine - Main Application
FILE: main.py
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import time

from app.core.config import settings
from app.db.mongodb import (
    close_mongo_connection,
    connect_to_mongo,
    ensure_indexes,
    get_database,
    ping_database
)
from app.api.errors import register_exception_handlers
from app.api.study_sessions import router as study_sessions_router
from app.api.test_sessions import router as test_sessions_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    logger.info("🚀 Starting Session Engine API...")

    try:
        await connect_to_mongo()
        await ensure_indexes(get_database())
        logger.info("✓ All connections initialized")

    except Exception as e:
        logger.error(f"❌ Startup error: {e}")
        raise

    yield

    # Shutdown
    logger.info("🛑 Shutting down Session Engine API...")

    try:
        await close_mongo_connection()
        logger.info("✓ Cleanup complete")

    except Exception as e:
        logger.error(f"❌ Shutdown error: {e}")


app = FastAPI(
    title="Session Engine API",
    description="""
    Study and timed test sessions for certification exam practice.

    ## Features
    - **Study sessions**: untimed practice with sequential, random, flagged,
      incorrect, review and weak-area question selection
    - **Test sessions**: timed, graded exam simulations with shuffled options
      and server-side expiry
    - **History & reports**: session history, bookmarks, weak areas, results

    ## Endpoints
    - **Study**: `/api/sessions/study/*`
    - **Test**: `/api/sessions/test/*`
    - **Health**: `/health`

    The caller is identified by the `X-User-Id` header set by the auth layer.
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time to response headers"""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000  # Convert to ms
    response.headers["X-Process-Time-Ms"] = str(round(process_time, 2))
    return response


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests"""
    logger.info(f"📨 {request.method} {request.url.path}")
    response = await call_next(request)
    logger.info(
        f"📤 {request.method} {request.url.path} - "
        f"Status: {response.status_code}"
    )
    return response


register_exception_handlers(app)


# ==================== INCLUDE ROUTERS ====================

app.include_router(study_sessions_router)
app.include_router(test_sessions_router)


# ==================== ROOT ENDPOINTS ====================

@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information"""
    return {
        "message": "Session Engine API",
        "version": "1.0.0",
        "status": "operational",
        "endpoints": {
            "docs": "/docs",
            "redoc": "/redoc",
            "study": "/api/sessions/study",
            "test": "/api/sessions/test",
            "health": "/health"
        }
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check

    Returns 200 when MongoDB answers a ping, 503 otherwise.
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "components": {}
    }

    try:
        if await ping_database():
            health_status["components"]["mongodb"] = {
                "status": "healthy",
                "message": "Connected and responsive"
            }
        else:
            health_status["components"]["mongodb"] = {
                "status": "unhealthy",
                "message": "Not connected"
            }
    except Exception as e:
        health_status["components"]["mongodb"] = {
            "status": "unhealthy",
            "message": str(e)
        }
        logger.error(f"❌ MongoDB health check failed: {e}")

    overall_healthy = health_status["components"]["mongodb"]["status"] == "healthy"
    health_status["status"] = "healthy" if overall_healthy else "degraded"

    health_status["api"] = {
        "title": app.title,
        "version": app.version,
        "status": "operational"
    }

    return JSONResponse(
        status_code=200 if overall_healthy else 503,
        content=health_status
    )


# ==================== RUN APPLICATION ====================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_level="info"
    )
