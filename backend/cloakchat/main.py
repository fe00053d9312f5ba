"""
Cloak Chat - Main FastAPI Application
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import chat_router, sessions_router, sync_router
from .config import settings
from .core.chat_service import ChatService
from .core.chat_store import ChatStore
from .core.logging_config import setup_logging
from .core.token_estimator import HeuristicTokenEstimator, TiktokenEstimator
from .llm.factory import create_family_providers
from .models import ModelConfig
from .services.remote_chat import HttpRemoteChatProvider
from .storage import LocalStorage, StateStore

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    setup_logging(settings)

    default_model_config = ModelConfig.from_settings(settings)
    storage = LocalStorage(settings.local_storage_path)
    state_store = StateStore(storage, settings.state_file, default_model_config)
    state = await state_store.load()
    store = ChatStore(state, default_model_config, undo_seconds=settings.delete_undo_seconds)

    providers = create_family_providers(settings)
    if not providers:
        logger.warning("LLM_API_KEY is not set; chat turns and summarization are disabled")

    remote = HttpRemoteChatProvider(
        settings.remote_base_url,
        auth_token=settings.remote_auth_token,
        timeout=settings.remote_timeout,
    )
    if settings.token_estimator == "tiktoken":
        estimator = TiktokenEstimator(settings.default_model)
    else:
        estimator = HeuristicTokenEstimator()

    app.state.chat_service = ChatService.from_settings(
        settings, store, estimator, providers, remote=remote
    )
    app.state.state_store = state_store

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Storage path: {settings.local_storage_path}")
    logger.info(f"Log level: {settings.log_level.upper()}")
    logger.info(f"Debug mode: {settings.debug}")
    yield
    # Shutdown
    service: ChatService = app.state.chat_service
    service.stop_all()
    await service.wait_background()
    await state_store.save(service.store.state)
    logger.info(f"Shutting down {settings.app_name}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Chat sessions with context assembly, memory summarization and remote sync",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sessions_router)
app.include_router(chat_router)
app.include_router(sync_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "cloakchat.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
