"""
FastAPI Backend for Soundprint

REST endpoints for resolving an artist's audio-feature profile and polling
the progress of a running resolution.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .client_factory import APIClientFactory
from .exceptions import CatalogUnavailableError
from .logging_middleware import LoggingMiddleware
from ..models.config_models import ResolverConfig
from ..services.feature_resolution_service import FeatureResolutionService
from ..services.progress_tracker import ProgressTracker

logger = structlog.get_logger(__name__)

VERSION = "0.1.0"


class FeatureRequest(BaseModel):
    """Request body for a feature resolution."""
    limit: Optional[int] = Field(None, description="Top tracks to use (clamped to 1..10, default 8)")
    force_refresh: bool = Field(False, description="Ignore a cached aggregate")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    timestamp: float
    version: str
    components: Dict[str, str]


def _get_service(request: Request) -> FeatureResolutionService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Feature resolution service unavailable")
    return service


def create_app(
    service: Optional[FeatureResolutionService] = None,
    progress_tracker: Optional[ProgressTracker] = None,
    config: Optional[ResolverConfig] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        service: Pre-built resolution service (tests); built from config otherwise
        progress_tracker: Shared progress store; one is created when omitted
        config: Resolver configuration; read from the environment when omitted

    Returns:
        Configured FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.progress_tracker = progress_tracker or getattr(service, "progress_tracker", None) or ProgressTracker()

        if service is not None:
            app.state.service = service
            yield
            return

        logger.info("Initializing Soundprint feature resolution service...")
        owned: Optional[FeatureResolutionService] = None
        try:
            factory = APIClientFactory(config or ResolverConfig.from_env())
            owned = factory.create_resolution_service(app.state.progress_tracker)
            await owned.__aenter__()
            logger.info("Soundprint feature resolution service initialized successfully")
        except Exception as e:
            logger.error("Failed to initialize feature resolution service", error=str(e))
            owned = None
        app.state.service = owned

        try:
            yield
        finally:
            logger.info("Shutting down Soundprint feature resolution service...")
            if owned is not None:
                await owned.close()
                if owned.cache_manager is not None:
                    owned.cache_manager.close()
            app.state.service = None

    app = FastAPI(
        title="Soundprint API",
        description="Artist audio-feature profiles from multiple feature providers",
        version=VERSION,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """Health check endpoint."""
        active = getattr(request.app.state, "service", None)
        components = {"resolution_service": "active" if active else "inactive"}
        if active is not None:
            for provider in active.providers:
                components[provider.name] = "configured" if provider.is_available() else "unconfigured"
        return HealthResponse(
            status="healthy",
            timestamp=time.time(),
            version=VERSION,
            components=components
        )

    @app.get("/artists/{artist_id}/progress")
    async def get_progress(artist_id: str, request: Request) -> Dict[str, Any]:
        """Current progress record for an artist (idle when no run has started)."""
        tracker: ProgressTracker = request.app.state.progress_tracker
        return tracker.get_progress(artist_id).model_dump(mode="json")

    @app.get("/artists/{artist_id}/top-tracks")
    async def get_top_tracks(
        artist_id: str,
        request: Request,
        limit: int = Query(8, description="Number of tracks (clamped to 1..10)")
    ) -> Dict[str, Any]:
        """Top tracks the resolver would use for an artist."""
        active = _get_service(request)
        try:
            tracks = await active.get_top_tracks(artist_id, limit)
        except CatalogUnavailableError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {"artist_id": artist_id, "tracks": [t.to_dict() for t in tracks]}

    @app.post("/artists/{artist_id}/features")
    async def resolve_features(
        artist_id: str,
        request: Request,
        body: Optional[FeatureRequest] = None
    ) -> Dict[str, Any]:
        """
        Resolve the averaged audio-feature vector for an artist.

        Poll ``/artists/{artist_id}/progress`` while this request runs.
        """
        active = _get_service(request)
        body = body or FeatureRequest()
        start_time = time.time()
        try:
            result = await active.resolve_artist_features(
                artist_id,
                limit=body.limit,
                force_refresh=body.force_refresh
            )
        except CatalogUnavailableError as e:
            raise HTTPException(status_code=502, detail=str(e))

        response = result.to_dict()
        response["processing_time"] = round(time.time() - start_time, 3)
        return response

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        """Custom HTTP exception handler."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.detail,
                "timestamp": time.time(),
                "path": str(request.url)
            }
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        """General exception handler for unexpected errors."""
        logger.error("Unexpected error", error=str(exc), error_type=type(exc).__name__)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "timestamp": time.time(),
                "path": str(request.url)
            }
        )

    return app


app = create_app()
