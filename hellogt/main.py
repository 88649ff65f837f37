import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hellogt.config import settings
from hellogt.api.v1.router import api_router
from hellogt.core.firebase import FirestoreDocumentStore, init_firebase
from hellogt.core.middleware import RequestLoggingMiddleware
from hellogt.core.session import SessionRegistry
from hellogt.db.memory import InMemoryDocumentStore
from hellogt.db.redis import LocalStateService, close_redis, init_redis
from hellogt.db.store import DocumentStore


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_document_store() -> DocumentStore:
    """Firestore when Firebase is configured, otherwise the in-memory store."""
    firebase_app = init_firebase()
    if firebase_app is None:
        logger.warning("Using in-memory document store; data is lost on restart")
        return InMemoryDocumentStore()
    return FirestoreDocumentStore(firebase_app, in_filter_limit=settings.FIRESTORE_IN_FILTER_LIMIT)


async def build_local_state() -> LocalStateService:
    client = await init_redis()
    return LocalStateService(client)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    store = build_document_store()
    local_state = await build_local_state()
    app.state.sessions = SessionRegistry(store, local_state)
    logger.info("%s started in %s mode", settings.APP_NAME, settings.ENVIRONMENT)

    yield

    # Shutdown
    await app.state.sessions.close_all()
    await close_redis()
    logger.info("%s shutting down", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="Swipe matching, match notifications and event attendance for the HelloGT app",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS middleware - Restricted to allowed origins only
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "Origin"],
    expose_headers=["X-Request-ID"],
    max_age=600,  # Cache preflight requests for 10 minutes
)

# Request logging middleware
app.add_middleware(RequestLoggingMiddleware)

# Include API routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
    }


@app.get("/health")
async def health_check():
    """Report which backends this process is running against."""
    from hellogt.core.firebase import firebase_app
    from hellogt.db.redis import redis_client

    return {
        "status": "healthy",
        "services": {
            "document_store": {"status": "firestore" if firebase_app else "in_memory"},
            "local_state": {"status": "redis" if redis_client else "in_memory"},
        },
    }
