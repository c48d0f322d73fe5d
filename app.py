"""
Trip Tracker Service: view-model API (FastAPI)

Purpose
=======
Load the trips and stop-details feeds, keep the map/list selection state and
collect rider contact reports, exposing all of it to the dashboard front end.

Key features
------------
- Fetch trips and stops from the static JSON feed (ids assigned per decode).
- Select a trip to frame its route; select a stop ordinal to open its details.
- Submit, list and delete contact reports persisted to a JSON blob file.

Run
---
$ uvicorn app:app --reload --port 8080

Environment
-----------
- PYTHON >= 3.10
- pip install fastapi uvicorn httpx
"""

from __future__ import annotations
from typing import Any, Dict, List
import asyncio, os
from pathlib import Path

from fastapi import Body, FastAPI, HTTPException

from kv_store import JSONFileKeyValueStore
from reports_store import ReportStore, ReportValidationError, build_report
from trip_client import TripFeedClient
from trip_store import TripStore

# ---------------------------
# Config
# ---------------------------
DATA_DIR = Path(os.getenv("DATA_DIR", "data"))
REPORTS_PATH = Path(os.getenv("REPORTS_PATH", str(DATA_DIR / "contact_reports.json")))
AUTO_REFRESH_ON_STARTUP = os.getenv("AUTO_REFRESH_ON_STARTUP", "1").strip().lower() not in {"0", "false", "no"}

# ---------------------------
# App & state
# ---------------------------
badge_state: Dict[str, int] = {"count": 0}


def set_badge_count(count: int) -> None:
    badge_state["count"] = count


trip_store = TripStore(TripFeedClient.from_env())
reports_store = ReportStore(
    JSONFileKeyValueStore(REPORTS_PATH),
    set_badge_count_fn=set_badge_count,
)

app = FastAPI(title="Trip Tracker")


@app.on_event("startup")
async def initial_refresh() -> None:
    await reports_store.sync_badge()
    if not AUTO_REFRESH_ON_STARTUP:
        return

    async def _refresh():
        try:
            await trip_store.refresh_all()
        except Exception as e:
            print(f"[app] initial refresh error: {e}")

    app.state.initial_refresh = asyncio.create_task(_refresh())


@app.on_event("shutdown")
async def shutdown_feed_client() -> None:
    await trip_store.client.aclose()


def _trip_or_404(trip_id: int):
    trip = trip_store.find_trip(trip_id)
    if trip is None:
        raise HTTPException(status_code=404, detail="trip not found")
    return trip


# ---------------------------
# Health & state
# ---------------------------
@app.get("/v1/health")
async def health():
    return {
        "ok": trip_store.error_message is None,
        "last_error": trip_store.error_message,
        "is_loading": trip_store.is_loading,
    }


@app.get("/api/state")
async def get_state():
    return {**trip_store.snapshot(), "badge_count": badge_state["count"]}


# ---------------------------
# Trips & stops
# ---------------------------
@app.get("/api/trips")
async def list_trips():
    return {"trips": [trip.to_dict() for trip in trip_store.trips]}


@app.get("/api/stops")
async def list_stops():
    return {"stops": [detail.to_dict() for detail in trip_store.stop_details]}


@app.post("/api/trips/refresh")
async def refresh_trips():
    await trip_store.refresh_trips()
    return {
        "ok": trip_store.error_message is None,
        "error_message": trip_store.error_message,
        "trips": [trip.to_dict() for trip in trip_store.trips],
    }


@app.post("/api/stops/refresh")
async def refresh_stops():
    await trip_store.refresh_stops()
    return {
        "ok": trip_store.error_message is None,
        "error_message": trip_store.error_message,
        "stops": [detail.to_dict() for detail in trip_store.stop_details],
    }


@app.post("/api/trips/{trip_id}/select")
async def select_trip(trip_id: int):
    trip = _trip_or_404(trip_id)
    trip_store.select_trip(trip)
    selected = trip_store.selected_trip
    return {
        "selected_trip": selected.to_dict() if selected else None,
        "route": [list(c) for c in trip_store.selected_trip_coordinates],
        "map_region": trip_store.map_region.to_dict(),
    }


@app.get("/api/trips/{trip_id}/stops")
async def list_trip_stops(trip_id: int):
    trip = _trip_or_404(trip_id)
    return {"stops": [detail.to_dict() for detail in trip_store.stops_for_trip(trip)]}


@app.post("/api/trips/{trip_id}/stops/{ordinal}/select")
async def select_stop(trip_id: int, ordinal: int):
    trip = _trip_or_404(trip_id)
    detail = trip_store.select_stop(ordinal, trip)
    return {
        "available": detail is not None,
        "stop": detail.to_dict() if detail else None,
        "showing_stop_popup": trip_store.showing_stop_popup,
    }


@app.post("/api/stop-popup/dismiss")
async def dismiss_stop_popup():
    trip_store.dismiss_stop_popup()
    return {"showing_stop_popup": trip_store.showing_stop_popup}


# ---------------------------
# Contact reports
# ---------------------------
@app.get("/api/reports")
async def list_reports():
    return {"reports": reports_store.list_reports(), "count": reports_store.count}


@app.post("/api/reports")
async def create_report(payload: Dict[str, Any] = Body(...)):
    try:
        report = build_report(payload)
    except ReportValidationError as exc:
        raise HTTPException(status_code=400, detail={"message": str(exc), "fields": exc.fields}) from exc
    await reports_store.save(report)
    trip_store.close_contact_form()
    return {"report": report.to_dict(), "count": reports_store.count}


@app.delete("/api/reports/{index}")
async def delete_report(index: int):
    removed = await reports_store.delete(index)
    return {"removed": removed, "count": reports_store.count}


@app.post("/api/reports/delete")
async def delete_reports(payload: Dict[str, Any] = Body(...)):
    raw_indices = payload.get("indices")
    if not isinstance(raw_indices, list):
        raise HTTPException(status_code=400, detail="indices must be a list")
    indices: List[int] = []
    for value in raw_indices:
        if isinstance(value, bool) or not isinstance(value, int):
            raise HTTPException(status_code=400, detail="indices must be integers")
        indices.append(value)
    removed = await reports_store.delete_many(indices)
    return {"removed": removed, "count": reports_store.count}


@app.post("/api/contact-form/open")
async def open_contact_form():
    trip_store.open_contact_form()
    return {"showing_contact_form": trip_store.showing_contact_form}


@app.post("/api/contact-form/close")
async def close_contact_form():
    trip_store.close_contact_form()
    return {"showing_contact_form": trip_store.showing_contact_form}
