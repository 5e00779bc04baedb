#!/usr/bin/env python3
"""
Forex Recommendation Engine - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Wires configuration, logging, database, broker, model and news
collaborators into one FastAPI application and serves it with
uvicorn.

============================================================
USAGE
============================================================
Direct execution:
    python app.py --port 8080

Without broker credentials:
    USE_MOCK_BROKER=true python app.py

With PM2:
    pm2 start app.py --interpreter python --name fx-recommender

============================================================
ENVIRONMENT
============================================================
DATABASE_URL_SYNC / DATABASE_URL     PostgreSQL connection
OANDA_API_KEY, OANDA_ACCOUNT_ID      Broker credentials
OANDA_ENV                            practice | live
ANTHROPIC_API_KEY                    Model drafts (heuristic without)
BRAVE_API_KEY                        News search
LOG_LEVEL, LOG_FORMAT                Logging

============================================================
"""

import argparse
import json
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies import EngineRuntime
from api.router import router
from data_ingestion.collectors import BraveNewsCollector
from recommendation_engine.adapters import (
    AnthropicModelClient,
    BrokerAdapter,
    MockBrokerAdapter,
    OandaBrokerAdapter,
)
from recommendation_engine.config import EngineConfig
from storage.database import Database


logger = logging.getLogger(__name__)


# ============================================================
# LOGGING
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Set up process-wide logging.

    Args:
        level: Log level name
        log_format: Output format (json or text)

    Returns:
        The application logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("app")


# ============================================================
# WIRING
# ============================================================

def build_broker(config: EngineConfig) -> BrokerAdapter:
    """OANDA when credentials are present, otherwise the mock broker."""
    if config.use_mock_broker:
        logger.info("Using mock broker (USE_MOCK_BROKER)")
        return MockBrokerAdapter()
    if not config.broker.api_key or not config.broker.account_id:
        logger.warning("OANDA credentials missing, falling back to mock broker")
        return MockBrokerAdapter()
    return OandaBrokerAdapter(config.broker)


def build_runtime(config: EngineConfig, create_tables: bool = False) -> EngineRuntime:
    database = Database(config.database)
    if create_tables:
        database.create_all()

    model_client = None
    if config.model.api_key:
        model_client = AnthropicModelClient(config.model)
    else:
        logger.warning("ANTHROPIC_API_KEY not set, recommendations will use the heuristic drafter")

    return EngineRuntime(
        config=config,
        database=database,
        broker=build_broker(config),
        news=BraveNewsCollector(config.news),
        model_client=model_client,
    )


def create_app(runtime: EngineRuntime) -> FastAPI:
    """Build the FastAPI application around a runtime."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Shutting down, releasing collaborators")
        runtime.close()

    app = FastAPI(
        title="Forex Recommendation Engine API",
        description="Generate, review and execute forex trade recommendations.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)

    @app.get("/")
    def root():
        return {"status": "ok", "message": "Forex Recommendation Engine is running"}

    return app


# ============================================================
# CLI
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Forex recommendation lifecycle and execution engine",
    )
    parser.add_argument("--host", default=os.getenv("APP_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("APP_PORT", os.getenv("PORT", "8080"))))
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    parser.add_argument("--log-format", choices=["json", "text"], default=None, help="Overrides LOG_FORMAT")
    parser.add_argument("--mock-broker", action="store_true", help="Use the in-process mock broker")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables on startup")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)

    config = EngineConfig.from_env()
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format
    if args.mock_broker:
        config.use_mock_broker = True

    app_logger = setup_logging(config.log_level, config.log_format)
    app_logger.info(f"Starting Forex Recommendation Engine on {args.host}:{args.port}")

    try:
        runtime = build_runtime(config, create_tables=args.create_tables)
        uvicorn.run(create_app(runtime), host=args.host, port=args.port, log_level="info")
    except Exception as e:
        app_logger.error(f"Failed to start: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
