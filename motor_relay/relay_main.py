# motor_relay/relay_main.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from motor_relay.config.settings import RelaySettings, configure_logging, load_relay_settings
from motor_relay.relay.registry import RelayRegistry
from motor_relay.relay.server import create_relay_router


logger = logging.getLogger(__name__)


def create_app(settings: Optional[RelaySettings] = None, registry: Optional[RelayRegistry] = None) -> FastAPI:
    settings = settings or load_relay_settings()
    registry = registry if registry is not None else RelayRegistry()

    app = FastAPI(
        title="Motor relay",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.registry = registry

    app.include_router(create_relay_router(registry, path=settings.path))

    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("WebSocket relay listening on %s:%d%s", settings.host, settings.port, settings.path)

    return app


def main() -> None:
    import uvicorn

    settings = load_relay_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
