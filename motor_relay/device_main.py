# motor_relay/device_main.py
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from motor_relay.api.command_api import create_command_router
from motor_relay.api.events_api import create_events_router
from motor_relay.api.page_api import create_page_router
from motor_relay.api.state_api import create_state_router
from motor_relay.config.settings import DeviceSettings, configure_logging, load_device_settings
from motor_relay.core.controller import DeviceController
from motor_relay.core.state import Event, EventLevel
from motor_relay.core.state_store import DeviceStateStore
from motor_relay.hw.interface import CommandSink
from motor_relay.hw.mock import MockActuator
from motor_relay.hw.serial_hw import SerialActuator, SerialConfig
from motor_relay.net.uplink import UplinkSession, UplinkState


logger = logging.getLogger(__name__)


def build_sink(settings: DeviceSettings) -> CommandSink:
    if settings.use_serial:
        return SerialActuator(SerialConfig(port=settings.serial_port, baud_rate=settings.baud_rate))
    logger.info("Serial disabled, using mock actuator")
    return MockActuator()


def create_app(
    settings: Optional[DeviceSettings] = None,
    sink: Optional[CommandSink] = None,
    connect: Optional[Callable[[str], Any]] = None,
) -> FastAPI:
    """
    Składa proces urządzenia: store + sterownik + (opcjonalnie) uplink do relay
    + lokalne HTTP. Wszystko na jednej pętli asyncio (tej od uvicorna).
    """
    settings = settings or load_device_settings()
    sink = sink if sink is not None else build_sink(settings)

    store = DeviceStateStore(settings.initial_state(), event_buffer_size=settings.event_buffer_size)

    def on_uplink_transition(old: UplinkState, new: UplinkState) -> None:
        if new is UplinkState.CONNECTED:
            ev_type, level = "UPLINK_CONNECTED", EventLevel.INFO
        elif old is UplinkState.CONNECTED:
            ev_type, level = "UPLINK_DISCONNECTED", EventLevel.WARNING
        else:
            return
        store.publish_events(
            [
                Event(
                    ts=time.time(),
                    source="uplink",
                    level=level,
                    type=ev_type,
                    message=f"Relay link {new.value}",
                    data={"url": uplink.url if uplink else None},
                )
            ]
        )

    uplink: Optional[UplinkSession] = None
    if settings.relay_url:
        uplink = UplinkSession(
            settings.relay_url,
            settings.device_id,
            reconnect_delay_s=settings.reconnect_delay_s,
            connect=connect,
            on_transition=on_uplink_transition,
        )
    else:
        logger.info("No relay URL configured, running local-only")

    controller = DeviceController(store, sink, publisher=uplink)
    if uplink is not None:
        uplink.bind(state_provider=store.snapshot, on_command=controller.submit)

    app = FastAPI(
        title="Motor controller",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.store = store
    app.state.sink = sink
    app.state.controller = controller
    app.state.uplink = uplink
    app.state.uplink_task = None

    @app.on_event("startup")
    async def on_startup() -> None:
        await sink.open()
        if uplink is not None:
            app.state.uplink_task = asyncio.create_task(uplink.run(), name="uplink")
        logger.info(
            "Device %s up, local control UI at http://%s:%d",
            settings.device_id,
            settings.http_host,
            settings.http_port,
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Shutdown requested: stopping uplink...")
        task = app.state.uplink_task
        if uplink is not None:
            await uplink.stop()
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            app.state.uplink_task = None
        await sink.close()
        logger.info("Shutdown handler finished.")

    # --- ROUTERY ---

    app.include_router(create_state_router(controller), prefix="/api")
    app.include_router(create_command_router(controller), prefix="/api")
    app.include_router(create_events_router(store), prefix="/api")
    app.include_router(create_page_router(settings))

    return app


def main() -> None:
    import uvicorn

    settings = load_device_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=settings.http_host,
        port=settings.http_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
