"""
FastAPI Application Entry Point

Integrates:
  - WhatsApp connection manager (session lifecycle, reconnect)
  - Message forwarder (inbound → backend webhook → reply)
  - Health and send endpoints
  - Middleware for logging & error handling

Run: python main.py
  or uvicorn main:app --host 0.0.0.0 --port 3000
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import BridgeConfig, get_config
from transport.whatsapp import (
    ConnectionManager,
    EventChannel,
    MessageForwarder,
    ProviderLoadError,
    load_provider,
    router as whatsapp_router,
)

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_connection_manager(config: BridgeConfig) -> Optional[ConnectionManager]:
    """
    Wire provider, forwarder and manager from configuration.

    Returns None when no usable provider is configured; the HTTP surface
    still runs and reports connected=false.
    """
    if not config.validate():
        return None

    try:
        provider = load_provider(config.provider)
    except ProviderLoadError as e:
        logger.error(f"Messaging provider unavailable: {e}")
        return None

    events = EventChannel()
    forwarder = MessageForwarder(
        webhook_url=config.webhook_url,
        events=events,
        timeout=config.webhook_timeout,
    )
    return ConnectionManager(
        provider=provider,
        forwarder=forwarder,
        auth_folder=config.auth_folder,
        browser=config.browser,
        base_delay=config.reconnect_base_delay,
        max_delay=config.reconnect_max_delay,
        events=events,
    )


def create_app(config: Optional[BridgeConfig] = None) -> FastAPI:
    """Create the bridge application."""
    config = config or get_config()
    logging.getLogger().setLevel(config.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan: startup and shutdown handlers.
        """
        # Startup
        logger.info("=" * 60)
        logger.info("WhatsApp bridge starting up...")
        logger.info(f"Backend webhook: {config.webhook_url}")
        logger.info(f"Auth folder: {config.auth_folder}")
        logger.info("=" * 60)

        manager = getattr(app.state, "connection_manager", None)
        if manager is None:
            manager = build_connection_manager(config)
            app.state.connection_manager = manager
        if manager is not None:
            await manager.start()

        yield

        # Shutdown
        logger.info("WhatsApp bridge shutting down...")
        if manager is not None:
            await manager.stop()
            await manager.forwarder.aclose()

    app = FastAPI(
        title="WhatsApp Bridge",
        description="Bridges a personal WhatsApp account to a webhook backend",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config

    # Middleware for logging
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests."""
        logger.debug(f"{request.method} {request.url.path}")
        try:
            response = await call_next(request)
            return response
        except Exception as e:
            logger.error(f"Request error: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error"},
            )

    app.include_router(whatsapp_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    config = app.state.config
    logger.info(f"WhatsApp bridge running on http://localhost:{config.port}")
    uvicorn.run(app, host=config.host, port=config.port)
