"""Read-only connectivity queries over a built GTFS snapshot.

Every query is a pure function of its arguments and the immutable
RecordStore/Indices pair the engine was built with. Unknown station names,
trip ids and stop ids yield empty results, never exceptions: callers decide
how to word "not found" for the user.
"""

import logging
from typing import Optional

from trainbot.indexing import Indices
from trainbot.models import (
    ConnectingRoute,
    ConnectingTrip,
    DirectionId,
    DirectionStops,
    RouteDirections,
    Station,
    StationRoutes,
    StopTime,
    TripPassage,
)
from trainbot.parsing import parse_coordinate, parse_sequence
from trainbot.store import RecordStore

logger = logging.getLogger("trainbot.connections")


def _first_matching(stop_times: tuple[StopTime, ...], stop_ids: frozenset[str]) -> Optional[StopTime]:
    for stop_time in stop_times:
        if stop_time.stop_id in stop_ids:
            return stop_time
    return None


class ConnectionQueryEngine:
    def __init__(self, store: RecordStore, indices: Indices):
        self.store = store
        self.indices = indices

    # --- helpers ---

    def _trip_ids_touching(self, stop_ids: frozenset[str]) -> set[str]:
        trip_ids: set[str] = set()
        for stop_id in stop_ids:
            trip_ids.update(self.indices.trip_ids_by_stop_id.get(stop_id, ()))
        return trip_ids

    def _stop_name(self, stop_id: str) -> Optional[str]:
        stop = self.indices.stop_by_id.get(stop_id)
        return stop.name if stop is not None else None

    def _resolve_pair(self, origin_name: str, destination_name: str):
        origin_ids = self.indices.stop_ids_for_name(origin_name)
        if not origin_ids:
            logger.info(f"Unknown origin station: {origin_name}")
            return None
        destination_ids = self.indices.stop_ids_for_name(destination_name)
        if not destination_ids:
            logger.info(f"Unknown destination station: {destination_name}")
            return None
        return origin_ids, destination_ids

    def _ordered_candidates(self, origin_ids: frozenset[str], destination_ids: frozenset[str]):
        """Trips that visit origin before destination, in ascending trip id order."""
        common = self._trip_ids_touching(origin_ids) & self._trip_ids_touching(destination_ids)
        logger.debug(f"{len(common)} trips touch both stations")

        for trip_id in sorted(common):
            trip = self.indices.trip_by_id.get(trip_id)
            if trip is None:
                continue
            stop_times = self.indices.stop_times_by_trip_id.get(trip_id, ())
            origin_st = _first_matching(stop_times, origin_ids)
            destination_st = _first_matching(stop_times, destination_ids)
            if origin_st is None or destination_st is None:
                continue

            origin_seq = parse_sequence(origin_st.sequence)
            destination_seq = parse_sequence(destination_st.sequence)
            if origin_seq is None or destination_seq is None:
                logger.debug(f"Trip {trip_id} skipped: unparseable stop_sequence at a matched stop")
                continue
            # A trip that reaches the destination first runs the wrong way for this query
            if destination_seq <= origin_seq:
                continue
            yield trip

    # --- core queries ---

    def trips_through_station(self, name: str) -> list[TripPassage]:
        """Distinct (headsign, direction) services that call at the named station."""
        stop_ids = self.indices.stop_ids_for_name(name)
        if not stop_ids:
            logger.info(f"Unknown station: {name}")
            return []

        route_ids: set[str] = set()
        for stop_id in stop_ids:
            route_ids.update(self.indices.route_ids_by_stop_id.get(stop_id, ()))

        # Not every trip on a route calls at every station on it
        calling_trip_ids = self._trip_ids_touching(stop_ids)

        passages: list[TripPassage] = []
        seen: set[tuple[str, str]] = set()
        for route_id in sorted(route_ids):
            for trip_id in self.indices.trip_ids_by_route_id.get(route_id, ()):
                if trip_id not in calling_trip_ids:
                    continue
                trip = self.indices.trip_by_id[trip_id]
                key = (trip.headsign, trip.direction_id)
                if key in seen:
                    continue
                seen.add(key)
                passages.append(TripPassage(headsign=trip.headsign, direction_id=trip.direction_id))

        logger.debug(f"{len(passages)} services pass through {name}")
        return passages

    def connecting_trips(self, origin_name: str, destination_name: str) -> list[ConnectingTrip]:
        resolved = self._resolve_pair(origin_name, destination_name)
        if resolved is None:
            return []

        trips = [
            ConnectingTrip(trip_id=trip.id, headsign=trip.headsign, direction_id=trip.direction_id)
            for trip in self._ordered_candidates(*resolved)
        ]
        logger.debug(f"{len(trips)} connecting trips from {origin_name} to {destination_name}")
        return trips

    def connecting_routes(
        self, origin_name: str, destination_name: str, direction: DirectionId
    ) -> list[ConnectingRoute]:
        """Routes with a trip in `direction` that reaches destination after origin.

        The direction token must match the trip's direction_id exactly.
        """
        resolved = self._resolve_pair(origin_name, destination_name)
        if resolved is None:
            return []

        routes: list[ConnectingRoute] = []
        seen_route_ids: set[str] = set()
        for trip in self._ordered_candidates(*resolved):
            if trip.direction_id != direction or trip.route_id in seen_route_ids:
                continue
            route = self.indices.route_by_id.get(trip.route_id)
            if route is None:
                continue
            seen_route_ids.add(trip.route_id)
            routes.append(ConnectingRoute(route=route, direction_id=direction))

        logger.debug(
            f"{len(routes)} connecting routes from {origin_name} to {destination_name} "
            f"in direction {direction!r}"
        )
        return routes

    def stops_after(self, trip_id: str, after_stop_id: str) -> list[str]:
        stop_times = self.indices.stop_times_by_trip_id.get(trip_id)
        if not stop_times:
            return []
        anchor = _first_matching(stop_times, frozenset((after_stop_id,)))
        if anchor is None:
            return []
        anchor_seq = parse_sequence(anchor.sequence)
        if anchor_seq is None:
            return []

        names = []
        for stop_time in stop_times:
            seq = parse_sequence(stop_time.sequence)
            if seq is None or seq <= anchor_seq:
                continue
            name = self._stop_name(stop_time.stop_id)
            if name is not None:
                names.append(name)
        return names

    # --- station and route summaries ---

    def resolve_station(self, alias: str) -> Optional[Station]:
        """Map a friendly station name to its abbreviation and loaded stop name."""
        abbr = self.store.aliases.get(alias)
        if abbr is None:
            return None
        for stop in self.store.stops:
            if stop.alias_abbreviation and stop.alias_abbreviation.lower() == abbr.lower():
                return Station(abbr=stop.alias_abbreviation, name=stop.name)
        return None

    def station_routes(self) -> list[StationRoutes]:
        stop_ids_by_name: dict[str, list[str]] = {}
        for stop in self.store.stops:
            stop_ids_by_name.setdefault(stop.name, []).append(stop.id)

        summary = []
        for name in sorted(stop_ids_by_name):
            route_names: set[str] = set()
            for stop_id in stop_ids_by_name[name]:
                for route_id in self.indices.route_ids_by_stop_id.get(stop_id, ()):
                    route = self.indices.route_by_id.get(route_id)
                    if route is not None:
                        route_names.add(route.long_name)
            summary.append(StationRoutes(name=name, route_names=sorted(route_names)))
        return summary

    def route_directions(self) -> list[RouteDirections]:
        """Each route's direction tokens with the stop path of its first trip per direction."""
        result = []
        for route in self.indices.route_by_id.values():
            first_trip_by_direction: dict[str, str] = {}
            for trip_id in self.indices.trip_ids_by_route_id.get(route.id, ()):
                direction = self.indices.trip_by_id[trip_id].direction_id
                first_trip_by_direction.setdefault(direction, trip_id)

            directions = []
            for direction in sorted(first_trip_by_direction):
                stop_times = self.indices.stop_times_by_trip_id.get(first_trip_by_direction[direction], ())
                names = [self._stop_name(st.stop_id) for st in stop_times]
                directions.append(
                    DirectionStops(
                        direction_id=DirectionId(direction),
                        stop_names=[n for n in names if n is not None],
                    )
                )
            result.append(RouteDirections(route=route, directions=directions))
        return result

    def travel_direction(self, origin: Station, destination: Station) -> Optional[DirectionId]:
        """BART direction token from relative latitude: "0" heading north, "1" heading south.

        Only meaningful for feeds that share BART's direction_id convention.
        """
        origin_stop = next((s for s in self.store.stops if s.alias_abbreviation == origin.abbr), None)
        destination_stop = next((s for s in self.store.stops if s.alias_abbreviation == destination.abbr), None)
        if origin_stop is None or destination_stop is None:
            return None

        origin_lat = parse_coordinate(origin_stop.latitude)
        destination_lat = parse_coordinate(destination_stop.latitude)
        if origin_lat is None or destination_lat is None:
            return None

        if destination_lat > origin_lat:
            return DirectionId("0")
        if destination_lat < origin_lat:
            return DirectionId("1")
        return None
