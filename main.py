from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.api.v1.api import api_router
from app.core.config import settings
from app.core.exceptions import DatabaseError
from app.providers.config import build_providers
from app.providers.mongo_database import MongoDatabaseProvider
import logging

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

import os

# Create FastAPI app
logger.info(f"Starting application on port {os.environ.get('PORT', 'unknown')}...")
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Auth, subscriptions, billing, notifications and support for a SaaS product",
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json"
)


def log_session_event(event, session):
    user_id = session.user.id if session else None
    logger.info(f"Auth event {event} (user: {user_id})")


@app.on_event("startup")
async def startup_providers():
    if getattr(app.state, "providers", None) is None:
        app.state.providers = build_providers()
    providers = app.state.providers

    if isinstance(providers.database, MongoDatabaseProvider):
        await providers.database.mongo.connect_to_database()

    subscribe = providers.auth.supports_live_session_events()
    if subscribe is not None:
        app.state.unsubscribe_session_events = subscribe(log_session_event)
    else:
        logger.info("Auth provider has no live session events")


@app.on_event("shutdown")
async def shutdown_providers():
    providers = getattr(app.state, "providers", None)
    if providers is None:
        return

    unsubscribe = getattr(app.state, "unsubscribe_session_events", None)
    if unsubscribe:
        unsubscribe()
    if isinstance(providers.database, MongoDatabaseProvider):
        await providers.database.mongo.close_database_connection()
    if hasattr(providers.auth, "aclose"):
        await providers.auth.aclose()


# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.PROJECT_NAME} API",
        "docs": "/docs",
        "version": settings.VERSION
    }


@app.get("/health")
async def health_check():
    """Health check endpoint. Pings the database."""
    providers = getattr(app.state, "providers", None)
    if providers is None:
        return {"status": "starting"}
    try:
        await providers.database.raw("ping")
    except DatabaseError as e:
        logger.error(f"Health check failed: {e}")
        return {"status": "unhealthy", "database": "unreachable"}
    return {"status": "healthy", "database": "ok"}


if __name__ == "__main__":
    import uvicorn

    # Render sets PORT environment variable, default to 10000
    port = int(os.environ.get("PORT", 10000))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=True)
