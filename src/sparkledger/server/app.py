"""Starlette ASGI application for the Spark knowledge consensus server.

Provides the REST surface over the knowledge engine, plus health checks,
server info, and Prometheus metrics.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ..consensus.engine import KnowledgeEngine
from ..core.config import load_topology
from ..core.exceptions import ConfigException
from ..core.logging import configure_logging, correlation_context
from ..identity.credentials import MirrorIdentityResolver
from ..ledger.gateway import GatewayLedgerWriter, HttpRegistry
from ..ledger.mirror import MirrorNodeReader
from .config import ServerSettings, get_settings
from .endpoints.agents import (
    agent_reputation_endpoint,
    endorse_agent_endpoint,
    list_agents_endpoint,
    sync_reputation_endpoint,
)
from .endpoints.knowledge import (
    cast_vote_endpoint,
    list_items_endpoint,
    reconcile_endpoint,
    topic_events_endpoint,
)
from .metrics import MetricsMiddleware, metrics_endpoint

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Scope every request to a correlation ID and echo it back."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        with correlation_context(request.headers.get(CORRELATION_HEADER)) as cid:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = cid
            return response


def build_engine(settings: ServerSettings) -> KnowledgeEngine:
    """Wire the production engine from settings.

    Raises:
        ConfigException: If the topology file is missing or invalid.
    """
    topology = load_topology(settings.topology_file)
    registry = None
    if settings.registry_url:
        registry = HttpRegistry(settings.registry_url, timeout=settings.http_timeout)
    else:
        logger.info("No SPARK_REGISTRY_URL configured; secondary reputation sync disabled")

    return KnowledgeEngine(
        reader=MirrorNodeReader(settings.mirror_url, timeout=settings.http_timeout),
        writer=GatewayLedgerWriter(settings.gateway_url, timeout=settings.http_timeout),
        topology=topology,
        identity=MirrorIdentityResolver(settings.mirror_url, timeout=settings.http_timeout),
        registry=registry,
        config=settings.engine_config(),
    )


async def health_endpoint(request: Request) -> JSONResponse:
    """Health check endpoint."""
    settings = get_settings()
    engine: KnowledgeEngine | None = getattr(request.app.state, "engine", None)

    health_data: dict[str, Any] = {
        "status": "healthy",
        "server": settings.server_name,
        "version": settings.server_version,
    }

    if engine is None:
        health_data["status"] = "degraded"
        health_data["engine"] = "not initialized"
    else:
        health_data["engine"] = "ready"
        health_data["masterTopicId"] = engine.topology.master_topic_id
        health_data["secondaryRegistry"] = "configured" if engine.registry is not None else "disabled"

    status_code = 200 if health_data["status"] == "healthy" else 503
    return JSONResponse(health_data, status_code=status_code)


async def info_endpoint(request: Request) -> JSONResponse:
    """Server info endpoint."""
    settings = get_settings()
    engine: KnowledgeEngine | None = getattr(request.app.state, "engine", None)

    response_data: dict[str, Any] = {
        "server": settings.server_name,
        "version": settings.server_version,
        "apiVersion": "v1",
        "consensusThreshold": engine.config.threshold if engine else settings.consensus_threshold,
        "categories": dict(engine.topology.sub_topics) if engine else {},
        "endpoints": {
            "health": "/api/v1/health",
            "info": "/",
            "vote": "/api/v1/knowledge/vote",
            "knowledge": "/api/v1/knowledge",
            "reconcile": "/api/v1/knowledge/reconcile",
            "agents": "/api/v1/agents",
            "topicEvents": "/api/v1/topics/{topicId}/events",
            "metrics": "/metrics",
        },
    }
    return JSONResponse(response_data)


@asynccontextmanager
async def lifespan(app: Starlette):
    """Application lifespan handler."""
    settings = get_settings()
    logger.info(f"Starting Spark server on {settings.host}:{settings.port}")

    if getattr(app.state, "engine", None) is None:
        logger.warning("Knowledge engine not initialized; ledger endpoints will return 503")

    yield

    logger.info("Spark server shutting down")


def create_app(engine: KnowledgeEngine | None = None) -> Starlette:
    """Create the Starlette ASGI application.

    Args:
        engine: Engine to serve. When omitted it is built from settings; a
            missing topology leaves the server up in degraded mode.
    """
    settings = get_settings()

    if engine is None:
        try:
            engine = build_engine(settings)
        except ConfigException as e:
            logger.warning(f"Could not build knowledge engine: {e.message}")

    API_V1 = "/api/v1"

    routes = [
        Route("/", info_endpoint, methods=["GET"]),
        Route(f"{API_V1}/health", health_endpoint, methods=["GET"]),
        # Knowledge items
        Route(f"{API_V1}/knowledge", list_items_endpoint, methods=["GET"]),
        Route(f"{API_V1}/knowledge/vote", cast_vote_endpoint, methods=["POST"]),
        Route(f"{API_V1}/knowledge/reconcile", reconcile_endpoint, methods=["POST"]),
        Route(f"{API_V1}/topics/{{topic_id}}/events", topic_events_endpoint, methods=["GET"]),
        # Agents and reputation
        Route(f"{API_V1}/agents", list_agents_endpoint, methods=["GET"]),
        Route(f"{API_V1}/agents/{{account_id}}/reputation", agent_reputation_endpoint, methods=["GET"]),
        Route(
            f"{API_V1}/agents/{{account_id}}/reputation/sync",
            sync_reputation_endpoint,
            methods=["POST"],
        ),
        Route(f"{API_V1}/agents/{{account_id}}/endorse", endorse_agent_endpoint, methods=["POST"]),
        # Prometheus metrics
        Route("/metrics", metrics_endpoint, methods=["GET"]),
        Route(f"{API_V1}/metrics", metrics_endpoint, methods=["GET"]),
    ]

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", CORRELATION_HEADER],
            expose_headers=[CORRELATION_HEADER],
        ),
        Middleware(CorrelationIdMiddleware),
        Middleware(MetricsMiddleware),
    ]

    app = Starlette(
        routes=routes,
        middleware=middleware,
        lifespan=lifespan,
    )
    app.state.engine = engine
    return app


def run() -> None:
    """Run the server using uvicorn."""
    import uvicorn

    settings = get_settings()
    configure_logging()

    logger.info(f"Starting Spark HTTP server on {settings.host}:{settings.port}")

    uvicorn.run(
        create_app(),
        host=settings.host,
        port=settings.port,
        log_level="info",
    )


if __name__ == "__main__":
    run()
