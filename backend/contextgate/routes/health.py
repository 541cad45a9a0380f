"""Welcome and health endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from contextgate.config import Settings, get_settings
from contextgate.deps import get_retriever, get_session_store
from contextgate.models import HealthResponse
from contextgate.retrieval import Retriever
from contextgate.session_store import SessionStore

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def welcome() -> str:
    return "Welcome to your custom Copilot Extension with project context!"


@router.get("/health", response_model=HealthResponse)
async def health(
    settings: Settings = Depends(get_settings),
    store: SessionStore = Depends(get_session_store),
    retriever: Retriever = Depends(get_retriever),
) -> HealthResponse:
    # Startup falls back to cookie sessions when Redis is down.
    degraded = store.backend != settings.session_backend
    return HealthResponse(
        status="degraded" if degraded else "ok",
        oauth_configured=bool(settings.github_client_id and settings.github_client_secret),
        retrieval_backend=retriever.name,
    )
