"""
capurl Signed-URL Gateway API Server

FastAPI server that hands out and enforces time-limited signed URLs for
objects in a blob store.

Endpoints:
- GET /assets/{key}     - Public object (no token)
- GET /generate/{path}  - Issue a signed URL for /{path}
- GET /uploads/{key}    - Protected object (?verify=<ts>-<mac> required)
- GET /invoices/{key}   - Protected object (?verify=<ts>-<mac> required)
- anything else         - 403 Access denied
"""

import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from loguru import logger
from pydantic import BaseModel, Field, SecretStr, field_validator

from .auth.policy import AccessPolicy, PathClassifier
from .backends import CachingStore, HTTPOriginBackend, LocalBackend, MemoryBackend, ObjectStore
from .core.errors import ConfigError
from .core.keys import load_secret_key
from .core.signing import DEFAULT_EXPIRY_SECONDS, URLSigner
from .core.tokens import VERIFY_PARAM
from .gateway import GatewayHandler


# =============================================================================
# Configuration
# =============================================================================

def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class ServerConfig(BaseModel):
    """API server configuration."""

    host: str = Field(
        default="127.0.0.1",
        description="Server host (use 0.0.0.0 for Docker/cloud, set via CAPURL_API_HOST env var)"
    )
    port: int = Field(default=8001, description="Server port")
    workers: int = Field(default=1, description="Number of worker processes")
    reload: bool = Field(default=False, description="Auto-reload on code changes")

    # Signing
    secret: Optional[SecretStr] = Field(
        default=None,
        description="Symmetric signing secret (SECRET_DATA env var)"
    )
    allow_insecure_default_key: bool = Field(
        default=False,
        description="Use the built-in demo key when no secret is set (never in production)"
    )
    expiry_seconds: int = Field(
        default=DEFAULT_EXPIRY_SECONDS,
        gt=0,
        description="Signed URL lifetime in seconds"
    )
    max_clock_skew: int = Field(
        default=0,
        ge=0,
        description="Seconds a token may be dated in the future"
    )

    # Storage configuration
    storage_backend: str = Field(
        default="local",
        description="Object store (local, memory, http)"
    )
    storage_dir: Path = Field(
        default=Path("./capurl_storage"),
        description="Local storage directory"
    )
    origin_url: Optional[str] = Field(default=None, description="HTTP origin base URL")
    origin_timeout: float = Field(default=30.0, description="HTTP origin timeout (seconds)")
    cache_enabled: bool = Field(default=False, description="Enable read-through object cache")
    cache_max_entries: int = Field(default=100, description="Max cached objects")

    # Observability
    health_path: Optional[str] = Field(
        default=None,
        description="Serve a JSON health check at this path (disabled when unset)"
    )
    log_dir: Path = Field(default=Path("logs"), description="Log file directory")

    @field_validator("health_path")
    @classmethod
    def _health_path_unclaimed(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not value.startswith("/"):
            raise ValueError("health_path must start with '/'")
        policy = PathClassifier().classify(value)
        if policy is not AccessPolicy.DENIED:
            raise ValueError(f"health_path {value} is already served as {policy.value}")
        return value

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Build configuration from environment variables."""
        secret = os.getenv("SECRET_DATA")
        return cls(
            host=os.getenv("CAPURL_API_HOST", "127.0.0.1"),
            port=int(os.getenv("CAPURL_API_PORT", "8001")),
            workers=int(os.getenv("WORKERS", "1")),
            reload=_env_bool("RELOAD"),
            secret=SecretStr(secret) if secret else None,
            allow_insecure_default_key=_env_bool("CAPURL_ALLOW_INSECURE_DEFAULT_KEY"),
            expiry_seconds=int(os.getenv("CAPURL_EXPIRY_SECONDS", str(DEFAULT_EXPIRY_SECONDS))),
            max_clock_skew=int(os.getenv("CAPURL_MAX_CLOCK_SKEW", "0")),
            storage_backend=os.getenv("CAPURL_STORAGE_BACKEND", "local"),
            storage_dir=Path(os.getenv("CAPURL_STORAGE_DIR", "./capurl_storage")),
            origin_url=os.getenv("CAPURL_ORIGIN_URL") or None,
            origin_timeout=float(os.getenv("CAPURL_ORIGIN_TIMEOUT", "30")),
            cache_enabled=_env_bool("CAPURL_CACHE_ENABLED"),
            cache_max_entries=int(os.getenv("CAPURL_CACHE_MAX_ENTRIES", "100")),
            health_path=os.getenv("CAPURL_HEALTH_PATH") or None,
            log_dir=Path(os.getenv("CAPURL_LOG_DIR", "logs")),
        )


def build_store(config: ServerConfig) -> ObjectStore:
    """Create the configured object store."""
    backend = config.storage_backend.lower()

    if backend == "local":
        store: ObjectStore = LocalBackend(config.storage_dir)
    elif backend == "memory":
        store = MemoryBackend()
    elif backend == "http":
        if not config.origin_url:
            raise ConfigError("CAPURL_ORIGIN_URL is required for the http backend")
        store = HTTPOriginBackend(config.origin_url, timeout=config.origin_timeout)
    else:
        raise ConfigError(f"Unknown storage backend: {config.storage_backend}")

    if config.cache_enabled:
        store = CachingStore(store, max_entries=config.cache_max_entries)
    return store


# =============================================================================
# Global State
# =============================================================================

class AppState:
    """Application state."""

    def __init__(self):
        self.config: Optional[ServerConfig] = None
        self.store: Optional[ObjectStore] = None
        self.signer: Optional[URLSigner] = None
        self.handler: Optional[GatewayHandler] = None
        self.started_at: Optional[datetime] = None

    @property
    def initialized(self) -> bool:
        return self.handler is not None

    async def initialize(self, config: ServerConfig, store: Optional[ObjectStore] = None):
        """
        Initialize application state.

        Raises:
            ConfigError: Missing secret or invalid storage settings
        """
        self.config = config

        key = load_secret_key(
            config.secret,
            allow_insecure_default=config.allow_insecure_default_key,
        )
        self.signer = URLSigner(
            key,
            expiry_seconds=config.expiry_seconds,
            max_clock_skew=config.max_clock_skew,
        )
        self.store = store if store is not None else build_store(config)
        self.handler = GatewayHandler(self.signer, self.store)
        self.started_at = datetime.now(timezone.utc)

        logger.info("✅ capurl gateway initialized")
        logger.info("   Storage backend: {}", config.storage_backend)
        logger.info("   Expiry: {}s", config.expiry_seconds)
        logger.info("   Cache: {}", "enabled" if config.cache_enabled else "disabled")

    async def shutdown(self):
        """Cleanup resources."""
        if self.store is not None:
            await self.store.close()
        self.handler = None
        logger.info("✅ capurl gateway shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(
    config: Optional[ServerConfig] = None,
    store: Optional[ObjectStore] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        config: Server configuration (read from the environment at startup if omitted)
        store: Object store override (built from config if omitted)
    """
    state = AppState()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: a ConfigError here aborts the server
        await state.initialize(config or ServerConfig.from_env(), store)
        yield
        # Shutdown
        await state.shutdown()

    app = FastAPI(
        title="capurl Signed-URL Gateway",
        description="Time-limited signed URLs for blob store objects",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.capurl = state

    @app.api_route("/{path:path}", methods=["GET", "HEAD"])
    async def gateway(path: str, request: Request) -> Response:
        path = "/" + path

        if state.config.health_path and path == state.config.health_path:
            return await _health(state)

        return await state.handler.handle(
            path,
            request.query_params.get(VERIFY_PARAM),
            head=request.method == "HEAD",
        )

    return app


async def _health(state: AppState) -> Response:
    """Health check endpoint."""
    return JSONResponse({
        "status": "healthy",
        "service": "capurl-gateway",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "initialized": state.initialized,
        "started_at": state.started_at.isoformat() if state.started_at else None,
        "storage_backend": state.config.storage_backend,
    })


app = create_app()


# =============================================================================
# Main Entry Point
# =============================================================================

def main():
    """Run API server."""
    config = ServerConfig.from_env()

    # Configure logging
    logger.add(
        str(config.log_dir / "capurl_api_{time}.log"),
        rotation="1 day",
        retention="30 days",
        level="INFO"
    )

    logger.info("🚀 Starting capurl gateway on {}:{}", config.host, config.port)
    logger.info("   Storage backend: {}", config.storage_backend)
    logger.info("   Secret configured: {}", config.secret is not None)
    logger.info("   Reload: {}", config.reload)
    logger.info("   Workers: {}", config.workers)

    # Run server
    uvicorn.run(
        "capurl.api_server:app",
        host=config.host,
        port=config.port,
        reload=config.reload,
        workers=config.workers if not config.reload else 1,
        log_level="info",
    )


if __name__ == "__main__":
    main()
