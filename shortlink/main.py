"""FastAPI application entry point for the shortlink service.

This module builds the FastAPI application, wires the lifespan that owns the
shared AppContext, and provides the ``shortlink`` command line entry point.

Application Lifecycle Diagram
=============================
::
    ┌─────────────┐
    │ load config │──── invalid ──► log + exit(1)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ create_app()│
    │ CORS, /metrics, routes
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ startup:    │
    │ AppContext  │
    │ + Redis ping│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ shutdown:   │
    │ drain tasks │
    │ close Redis │
    └─────────────┘

How to Use
===========
**Step 1 — Run the service**::
    shortlink --config config.yaml

**Step 2 — Or with uvicorn directly**::
    uvicorn shortlink.main:create_app --factory --port 8080

**Step 3 — Make API calls**::
    curl http://localhost:8080/healthy

    curl -X POST http://localhost:8080/shorten \
         -H "Content-Type: application/json" \
         -d '{"long_url": "https://example.com/page"}'

Key Behaviours
===============
- Invalid request bodies are answered with 400 (not FastAPI's default 422).
- ``/metrics`` is registered before the router so the catch-all redirect
  route does not shadow it.
- Pending visit updates are drained on shutdown.
"""

__all__ = ["create_app", "main"]

import argparse
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from shortlink.config import Settings, get_settings, load_settings
from shortlink.dependencies import AppContext, setup_logger
from shortlink.enums import RequestStatus
from shortlink.exceptions import ConfigError
from shortlink.routes import router
from shortlink.service import LINK_CREATION_REQUESTS_TOTAL


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        context = AppContext.build(settings)
        await context.startup()
        app.state.context = context
        yield
        # Shutdown
        await context.cleanup()
        app.state.context = None

    app = FastAPI(
        title="shortlink",
        version="1.0.0",
        description="Short link service with a local expiring cache in front of Redis",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        if request.url.path == "/shorten":
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.VALIDATION_ERROR, reused="false").inc()
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=False,
        should_respect_env_var=False,
    ).instrument(app).expose(app)

    app.include_router(router)
    return app


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run the shortlink service")
    parser.add_argument("--config", help="Path to the YAML configuration file (default: config.yaml)")
    parser.add_argument("--host", help="Bind address (default: base.host)")
    parser.add_argument("--port", type=int, help="Listen port (default: base.port)")
    args = parser.parse_args(argv)

    logger = setup_logger()
    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        logger.critical(f"Error reading config file: {exc}")
        sys.exit(1)

    logger.setLevel(settings.log.level)
    logger.info(f"Starting shortlink for {settings.base.website} (store {settings.store_address})")
    uvicorn.run(
        create_app(settings),
        host=args.host or settings.base.host,
        port=args.port or settings.base.port,
        log_level=settings.log.level.lower(),
    )


if __name__ == "__main__":
    main()
