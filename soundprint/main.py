"""
Soundprint Main Application

Entry point: serves the FastAPI backend with uvicorn, or resolves a single
artist from the command line and prints the aggregate as JSON.
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Optional, Sequence

import structlog
import uvicorn
from dotenv import load_dotenv

from .api.client_factory import APIClientFactory
from .api.exceptions import CatalogUnavailableError
from .models.config_models import ResolverConfig
from .services.progress_tracker import ProgressTracker
from .utils.logging_config import setup_logging

logger = structlog.get_logger(__name__)


async def resolve_once(artist_id: str, limit: Optional[int], config: ResolverConfig) -> dict:
    """Resolve one artist outside the HTTP server."""
    factory = APIClientFactory(config)
    async with factory.create_resolution_service(ProgressTracker()) as service:
        result = await service.resolve_artist_features(artist_id, limit=limit)
    return result.to_dict()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the application."""
    load_dotenv()

    parser = argparse.ArgumentParser(prog="soundprint", description="Artist audio-feature profiles")
    parser.add_argument("--artist", help="Resolve this artist id once and print JSON instead of serving")
    parser.add_argument("--limit", type=int, default=None, help="Top tracks to use (1..10)")
    parser.add_argument("--host", default=os.getenv("BACKEND_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("BACKEND_PORT", "8000")))
    args = parser.parse_args(argv)

    setup_logging(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        enable_console=args.artist is None
    )
    config = ResolverConfig.from_env(dotenv=False)

    if args.artist:
        try:
            result = asyncio.run(resolve_once(args.artist, args.limit, config))
        except CatalogUnavailableError as e:
            print(str(e), file=sys.stderr)
            return 1
        print(json.dumps(result, indent=2))
        return 0

    try:
        from .api.backend import create_app

        logger.info("Starting Soundprint backend", host=args.host, port=args.port)
        uvicorn.run(create_app(config=config), host=args.host, port=args.port, log_level="info")
    except KeyboardInterrupt:
        logger.info("Application stopped by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
