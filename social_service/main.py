"""
FastAPI application for Social Core Service
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from .config import settings
from .container import build_services
from .errors import ErrorKind, SocialServiceError
from .kafka_producer import kafka_producer
from .pubsub import create_broker
from .schemas import ServiceResult
from .storage import S3ObjectStorage
from .infrastructure.database.connection import db
from .infrastructure.database.memory import create_memory_repositories
from .infrastructure.database.repositories import create_postgres_repositories
from .api.routes import conversations, interactions, links, notifications, subscriptions, unreads, uploads

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def _connect_storage():
    if not settings.STORAGE_ENABLED:
        logger.info("Object storage is disabled")
        return None
    try:
        storage = S3ObjectStorage()
        await storage.connect()
        logger.info("Object storage initialized")
        return storage
    except Exception as e:
        logger.warning(f"Failed to initialize object storage: {e}. Uploads disabled.")
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting Social Core Service...")

    if settings.DATABASE_BACKEND == "memory":
        repos = create_memory_repositories()
        logger.warning("Using in-memory store; data is lost on restart")
    else:
        await db.connect()
        await db.create_schema()
        repos = create_postgres_repositories(db)
        logger.info("Database connected")

    broker = await create_broker()
    logger.info(f"Pub/sub broker ready: {type(broker).__name__}")

    await kafka_producer.start()

    storage = await _connect_storage()

    app.state.services = build_services(repos, broker, push=kafka_producer, storage=storage)

    logger.info(f"Social Core Service started successfully on port {settings.PORT}")

    yield

    # Shutdown
    logger.info("Shutting down Social Core Service...")

    await broker.close()
    await kafka_producer.stop()

    if settings.DATABASE_BACKEND != "memory":
        await db.disconnect()

    logger.info("Social Core Service shut down successfully")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Social core - links, conversations, post interactions, notifications and realtime updates",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SocialServiceError)
async def social_service_error_handler(request: Request, exc: SocialServiceError):
    """Raised errors use the same body as returned results"""
    body = ServiceResult(success=False, status_code=exc.status_code, message=exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.kind == ErrorKind.UNAUTHENTICATED else None
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(by_alias=True, mode="json"),
        headers=headers,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    body = ServiceResult.fail(ErrorKind.INTERNAL, "Internal server error")
    return JSONResponse(status_code=500, content=body.model_dump(by_alias=True, mode="json"))


# Include routers
app.include_router(links.router)
app.include_router(conversations.router)
app.include_router(interactions.router)
app.include_router(notifications.router)
app.include_router(unreads.router)
app.include_router(uploads.router)
app.include_router(subscriptions.router)


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": settings.APP_NAME}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "social_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
