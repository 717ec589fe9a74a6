from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI

from detail_service.app.http.routers.answer import router as answer_router
from detail_service.app.http.routers.chat import router as chat_router
from detail_service.app.http.routers.conversations import router as conversations_router
from detail_service.app.http.routers.health import router as health_router
from detail_service.app.http.routers.search import router as search_router


def create_app(settings: Optional[Dict[str, Any]] = None):
    """Create and configure the FastAPI application with DI"""
    from detail_service.core.config import load_settings
    from detail_service.core.factory import ServiceFactory
    from detail_service.core.logging import configure_logging

    settings = settings if settings is not None else load_settings()
    configure_logging(settings.get("logging", {}).get("level"))

    factory = ServiceFactory(settings)
    app = FastAPI(title="De-Tail Search", description="AI-powered search with streamed reasoning")
    # store service on app state
    app.state.factory = factory
    app.state.answer_svc = factory.get_answer_service()

    # Create a new APIRouter for versioning
    v1_router = APIRouter(prefix="/api/v1")

    v1_router.include_router(answer_router)
    v1_router.include_router(chat_router)
    v1_router.include_router(conversations_router)
    v1_router.include_router(health_router)
    v1_router.include_router(search_router)

    app.include_router(v1_router)
    return app
