"""View-model state for the trip map/list screens.

``TripStore`` owns the fetched collections and the selection state. Trips and
stop details are fetched independently, so a stop detail is only matched to
its trip when a stop is selected.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from route_geometry import (
    DEFAULT_MAP_REGION,
    Coordinate,
    MapRegion,
    decode_polyline,
    region_for_coordinates,
)
from trip_client import TripFeedClient, TripFeedError
from trip_models import StopDetail, Trip


class TripStore:
    def __init__(self, client: TripFeedClient) -> None:
        self.client = client
        self.trips: List[Trip] = []
        self.selected_trip: Optional[Trip] = None
        self.selected_trip_coordinates: List[Coordinate] = []
        self.stop_details: List[StopDetail] = []
        self.selected_stop_detail: Optional[StopDetail] = None
        self.map_region: MapRegion = DEFAULT_MAP_REGION
        self.error_message: Optional[str] = None
        self.is_loading = False
        self.showing_contact_form = False
        self.showing_stop_popup = False

    # ---------------------------
    # Loading
    # ---------------------------

    async def refresh_trips(self) -> None:
        """Replace ``trips`` with a fresh fetch; on failure keep the old list."""
        self.is_loading = True
        self.error_message = None
        try:
            self.trips = await self.client.load_trips()
        except TripFeedError as exc:
            print(f"[trip_store] trips refresh failed: {exc}")
            self.error_message = f"Failed to load trips: {exc.description}"
        finally:
            self.is_loading = False

    async def refresh_stops(self) -> None:
        """Replace ``stop_details`` with a fresh fetch; on failure keep the old list."""
        self.is_loading = True
        self.error_message = None
        try:
            self.stop_details = await self.client.load_stops()
        except TripFeedError as exc:
            print(f"[trip_store] stops refresh failed: {exc}")
            self.error_message = f"Failed to load stops: {exc.description}"
        finally:
            self.is_loading = False

    async def refresh_all(self) -> None:
        await asyncio.gather(self.refresh_trips(), self.refresh_stops())

    # ---------------------------
    # Selection
    # ---------------------------

    def find_trip(self, trip_id: int) -> Optional[Trip]:
        for trip in self.trips:
            if trip.id == trip_id:
                return trip
        return None

    def select_trip(self, trip: Trip) -> None:
        """Select ``trip`` and frame its route; selecting it again deselects it.

        A route that decodes to no points leaves the previous coordinates and
        map region in place.
        """
        if self.selected_trip is not None and self.selected_trip.id == trip.id:
            self.selected_trip = None
            self.selected_trip_coordinates = []
            self.map_region = DEFAULT_MAP_REGION
            return

        self.selected_trip = trip
        coords = decode_polyline(trip.route)
        region = region_for_coordinates(coords)
        if region is None:
            print(f"[trip_store] trip {trip.id} has no decodable route")
            return
        self.map_region = region
        self.selected_trip_coordinates = coords

    def stops_for_trip(self, trip: Trip) -> List[StopDetail]:
        return [detail for detail in self.stop_details if detail.trip_id == trip.id]

    def select_stop(self, ordinal: int, trip: Trip) -> Optional[StopDetail]:
        """Show the popup for the ``ordinal``-th (1-based) stop of ``trip``.

        ``selected_stop_detail`` is None when the trip has fewer matching stop
        details than ``ordinal``; the popup opens either way.
        """
        trip_stops = self.stops_for_trip(trip)
        if 1 <= ordinal <= len(trip_stops):
            self.selected_stop_detail = trip_stops[ordinal - 1]
        else:
            self.selected_stop_detail = None
        self.showing_stop_popup = True
        return self.selected_stop_detail

    def dismiss_stop_popup(self) -> None:
        self.showing_stop_popup = False
        self.selected_stop_detail = None

    def open_contact_form(self) -> None:
        self.showing_contact_form = True

    def close_contact_form(self) -> None:
        self.showing_contact_form = False

    def snapshot(self) -> Dict[str, Any]:
        return {
            "trip_count": len(self.trips),
            "stop_count": len(self.stop_details),
            "selected_trip_id": self.selected_trip.id if self.selected_trip else None,
            "selected_trip_coordinates": [list(c) for c in self.selected_trip_coordinates],
            "selected_stop": (
                self.selected_stop_detail.to_dict() if self.selected_stop_detail else None
            ),
            "map_region": self.map_region.to_dict(),
            "error_message": self.error_message,
            "is_loading": self.is_loading,
            "showing_contact_form": self.showing_contact_form,
            "showing_stop_popup": self.showing_stop_popup,
        }


__all__ = ["TripStore"]
