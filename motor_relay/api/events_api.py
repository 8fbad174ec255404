from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Query

from motor_relay.core.state import Event
from motor_relay.core.state_store import DeviceStateStore


def create_events_router(store: DeviceStateStore) -> APIRouter:
    """
    Router do odczytu ring-bufora eventów urządzenia:
      GET /events?since=<seq>

    Klient pamięta last_seq i pyta o kolejne; overflow=True znaczy,
    że część eventów wypadła z bufora między zapytaniami.
    """
    router = APIRouter(tags=["events"])

    def _serialize(ev: Event) -> Dict[str, Any]:
        return {
            "seq": ev.data.get("seq"),
            "ts": ev.ts,
            "ts_iso": datetime.fromtimestamp(ev.ts).isoformat(timespec="seconds"),
            "level": ev.level.name,
            "source": ev.source,
            "type": ev.type,
            "message": ev.message,
            "data": {k: v for k, v in ev.data.items() if k != "seq"},
        }

    @router.get("/events")
    async def get_events(since: int = Query(0, ge=0, description="Ostatni znany seq")):
        page = store.events_since(since)
        return {
            "events": [_serialize(ev) for ev in page.events],
            "last_seq": page.last_seq,
            "overflow": page.overflow,
        }

    return router
