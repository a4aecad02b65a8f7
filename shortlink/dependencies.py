"""Application context and dependency injection for the shortlink API.

Shared resources (settings, logger, Redis-backed store, local cache, code
generator, background task supervisor) are built once at startup into an
AppContext, which the lifespan handler stores on ``app.state``. Each request
gets a lightweight RequestContext on top of it carrying request-scoped
tracking fields and a logger adapter.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request

from shortlink.cache import ExpiringCache
from shortlink.codegen import CodeGenerator
from shortlink.config import Settings
from shortlink.service import ResolutionService
from shortlink.store import LinkStore
from shortlink.tasks import TaskSupervisor

__all__ = [
    "AppContext",
    "RequestContext",
    "get_app_context",
    "get_request_context",
    "get_resolution_service",
    "setup_logger",
]

LOGGER_NAME = "shortlink"


def setup_logger(level: str = "INFO") -> logging.Logger:
    """Configure the service logger once; later calls only adjust the level."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger


# ============================================================================
# APPLICATION CONTEXT
# ============================================================================


@dataclass
class AppContext:
    """Process-wide resources, constructed once per application.

    Attributes:
        settings: Static configuration loaded at startup
        logger: Service logger
        store: Durable link store (Redis)
        cache: Local expiring cache of short code -> long URL
        generator: Short code generator backed by the store's dedup index
        tasks: Supervisor for fire-and-forget work
    """

    settings: Settings
    logger: logging.Logger
    store: LinkStore
    cache: ExpiringCache[str]
    generator: CodeGenerator
    tasks: TaskSupervisor

    @classmethod
    def build(
        cls,
        settings: Settings,
        store: Optional[LinkStore] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "AppContext":
        logger = logger or setup_logger(settings.log.level)
        store = store or LinkStore.from_settings(settings, logger.getChild("store"))
        return cls(
            settings=settings,
            logger=logger,
            store=store,
            cache=ExpiringCache(default_ttl=settings.cache_ttl_seconds),
            generator=CodeGenerator(store),
            tasks=TaskSupervisor(logger.getChild("tasks")),
        )

    async def startup(self) -> None:
        if await self.store.ping():
            self.logger.info(f"Connected to Redis at {self.settings.store_address}")
        else:
            self.logger.error(f"Redis at {self.settings.store_address} is unreachable; serving anyway")

    async def cleanup(self) -> None:
        """Drain background work and release shared resources at shutdown."""
        cancelled = await self.tasks.drain(self.settings.base.drain_timeout)
        if cancelled:
            self.logger.warning(f"{cancelled} visit update(s) dropped during shutdown")
        self.cache.clear()
        await self.store.close()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request view of the application context with tracking fields.

    Attributes:
        app: Shared application context
        request_id: Unique identifier for this request
        user_agent: Client user agent string
        client_ip: Client IP address
        start_time: Request start timestamp
    """

    app: AppContext
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=time.perf_counter)

    @property
    def settings(self) -> Settings:
        return self.app.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Service logger with request context attached to every record."""
        return logging.LoggerAdapter(
            self.app.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
            },
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.perf_counter() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def get_app_context(request: Request) -> AppContext:
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise RuntimeError("Application context is not initialized; was the lifespan run?")
    return context


def get_request_context(request: Request, app_ctx: AppContext = Depends(get_app_context)) -> RequestContext:
    return RequestContext(
        app=app_ctx,
        request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        user_agent=request.headers.get("user-agent"),
        client_ip=request.client.host if request.client else None,
    )


def get_resolution_service(ctx: RequestContext = Depends(get_request_context)) -> ResolutionService:
    return ResolutionService.from_context(ctx)
