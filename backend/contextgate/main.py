"""FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from contextgate.config import Settings, get_settings
from contextgate.context_loader import load_project_context
from contextgate.errors import GatewayError
from contextgate.redis_client import connect_redis, disconnect_redis
from contextgate.retrieval import ContextRetriever, HttpRetriever, Retriever
from contextgate.routes import agent, auth, health, query
from contextgate.session_store import (
    CookieSessionStore,
    MemorySessionStore,
    RedisSessionStore,
    SessionStore,
)

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )
    # httpx logs full request URLs at INFO, which would include OAuth codes.
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def build_session_store(settings: Settings) -> SessionStore:
    if settings.session_backend == "memory":
        return MemorySessionStore(secure=settings.cookie_secure)
    if settings.session_backend == "redis":
        redis = await connect_redis(settings.redis_url)
        if redis is not None:
            return RedisSessionStore(redis, secure=settings.cookie_secure)
    return CookieSessionStore(secure=settings.cookie_secure)


def build_retriever(settings: Settings, client: httpx.AsyncClient, project_context: str) -> Retriever:
    if settings.retrieval_configured:
        return HttpRetriever(client, settings.retrieval_url)
    return ContextRetriever(project_context)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: validate settings, load context, open clients. Shutdown: close them."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app.state.project_context = load_project_context(settings)
    app.state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.upstream_timeout, connect=10.0),
    )
    app.state.session_store = await build_session_store(settings)
    app.state.retriever = build_retriever(
        settings, app.state.http_client, app.state.project_context
    )
    logger.info(
        "contextgate ready (sessions=%s, retrieval=%s)",
        app.state.session_store.backend,
        app.state.retriever.name,
    )
    yield
    await app.state.http_client.aclose()
    await disconnect_redis()


app = FastAPI(
    title="contextgate",
    description="Copilot extension gateway — GitHub login, context injection, streaming relay",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> PlainTextResponse:
    logger.warning("%s %s -> %d %s", request.method, request.url.path, exc.status_code, type(exc).__name__)
    return PlainTextResponse(exc.message, status_code=exc.status_code)


app.include_router(health.router)
app.include_router(auth.router)
app.include_router(agent.router)
app.include_router(query.router)


def run() -> None:
    """Console entry point. Fails before binding if required settings are missing."""
    settings = get_settings()
    uvicorn.run("contextgate.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
