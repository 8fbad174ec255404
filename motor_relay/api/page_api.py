from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from motor_relay.config.settings import DeviceSettings


STATIC_DIR = Path(__file__).resolve().parent / "static"


def render_page(settings: DeviceSettings) -> str:
    html = (STATIC_DIR / "index.html").read_text(encoding="utf-8")
    return (
        html.replace("{{MIN_US}}", str(settings.pulse_interval_min_us))
        .replace("{{MAX_US}}", str(settings.pulse_interval_max_us))
        .replace("{{INITIAL_US}}", str(settings.initial_pulse_interval_us))
    )


def create_page_router(settings: DeviceSettings) -> APIRouter:
    """GET / – strona lokalnego sterowania (LAN)."""
    router = APIRouter(tags=["page"])
    page = render_page(settings)

    @router.get("/", response_class=HTMLResponse)
    async def index():
        return HTMLResponse(page)

    return router
