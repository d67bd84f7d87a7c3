"""
Storefront Chat Backend - Main Application Entry Point

Buyer/seller chat rooms over a realtime tree store.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.logger import logger
from app.services.chat_context import ChatContext


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    settings = get_settings()
    logger.info(f"Starting Storefront Chat Backend in {settings.ENVIRONMENT} mode...")

    if getattr(app.state, "chat_context", None) is None:
        app.state.chat_context = await ChatContext.create(settings)

    yield

    # Shutdown
    logger.info("Shutting down Storefront Chat Backend...")
    await app.state.chat_context.shutdown()
    app.state.chat_context = None


def create_app(context: ChatContext | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Storefront Chat Backend",
        description="Realtime buyer/seller chat rooms",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )
    app.state.chat_context = context

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    from app.api import chats, users

    app.include_router(chats.router, prefix="/api/chats", tags=["chats"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "store": settings.TREE_STORE_BACKEND,
            "version": "0.1.0",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
