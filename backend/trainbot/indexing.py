"""Derived lookup indices over a RecordStore.

`build_indices` is pure: it reads the store and returns a frozen `Indices`
value whose maps are read-only views. Nothing mutates an `Indices` after it is
returned, so one instance can be shared by any number of concurrent readers.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from trainbot.models import Route, Stop, StopTime, Trip
from trainbot.parsing import parse_sequence
from trainbot.store import RecordStore

logger = logging.getLogger("trainbot.index")


def _empty() -> Mapping:
    return MappingProxyType({})


@dataclass(frozen=True)
class Indices:
    # lowercased stop name -> ids of every stop (platform) carrying that name
    name_to_stop_ids: Mapping[str, frozenset[str]] = field(default_factory=_empty)
    trip_by_id: Mapping[str, Trip] = field(default_factory=_empty)
    route_by_id: Mapping[str, Route] = field(default_factory=_empty)
    # trip id -> stop_times ascending by parsed sequence (unparseable last)
    stop_times_by_trip_id: Mapping[str, tuple[StopTime, ...]] = field(default_factory=_empty)
    route_ids_by_stop_id: Mapping[str, frozenset[str]] = field(default_factory=_empty)
    stop_by_id: Mapping[str, Stop] = field(default_factory=_empty)
    trip_ids_by_stop_id: Mapping[str, frozenset[str]] = field(default_factory=_empty)
    # route id -> trip ids in load order
    trip_ids_by_route_id: Mapping[str, tuple[str, ...]] = field(default_factory=_empty)

    def stop_ids_for_name(self, name: str) -> frozenset[str]:
        """Case-insensitive station name lookup; empty when the name is unknown."""
        return self.name_to_stop_ids.get(name.lower(), frozenset())


def _freeze_sets(mapping: dict[str, set[str]]) -> Mapping[str, frozenset[str]]:
    return MappingProxyType({key: frozenset(values) for key, values in mapping.items()})


def build_name_index(stops) -> Mapping[str, frozenset[str]]:
    index: dict[str, set[str]] = defaultdict(set)
    for stop in stops:
        index[stop.name.lower()].add(stop.id)
    return _freeze_sets(index)


def build_trip_index(trips) -> Mapping[str, Trip]:
    index: dict[str, Trip] = {}
    for trip in trips:
        if trip.id in index:
            logger.debug(f"Duplicate trip_id {trip.id}, keeping the last row")
        index[trip.id] = trip
    return MappingProxyType(index)


def build_route_index(routes) -> Mapping[str, Route]:
    index: dict[str, Route] = {}
    for route in routes:
        if route.id in index:
            logger.debug(f"Duplicate route_id {route.id}, keeping the last row")
        index[route.id] = route
    return MappingProxyType(index)


def build_stop_index(stops) -> Mapping[str, Stop]:
    """stop id -> stop. Unlike trips and routes, a repeated stop_id keeps the first row."""
    index: dict[str, Stop] = {}
    for stop in stops:
        if stop.id in index:
            logger.debug(f"Duplicate stop_id {stop.id}, keeping the first row")
            continue
        index[stop.id] = stop
    return MappingProxyType(index)


def _sequence_sort_key(stop_time: StopTime) -> tuple[bool, int]:
    sequence = parse_sequence(stop_time.sequence)
    return (sequence is None, sequence if sequence is not None else 0)


def build_stop_times_index(stop_times) -> Mapping[str, tuple[StopTime, ...]]:
    grouped: dict[str, list[StopTime]] = defaultdict(list)
    for stop_time in stop_times:
        grouped[stop_time.trip_id].append(stop_time)

    index: dict[str, tuple[StopTime, ...]] = {}
    unparseable = 0
    trips_with_repeats = 0
    for trip_id, trip_stop_times in grouped.items():
        # sorted() is stable: malformed sequences keep their load order at the end
        ordered = sorted(trip_stop_times, key=_sequence_sort_key)
        sequences = [parse_sequence(st.sequence) for st in ordered]
        parsed = [seq for seq in sequences if seq is not None]
        unparseable += len(sequences) - len(parsed)
        if len(set(parsed)) != len(parsed):
            trips_with_repeats += 1
            logger.debug(f"Trip {trip_id} repeats stop_sequence values: {parsed}")
        index[trip_id] = tuple(ordered)

    if unparseable:
        logger.warning(f"{unparseable} stop_times have an unparseable stop_sequence")
    if trips_with_repeats:
        logger.warning(f"{trips_with_repeats} trips repeat a stop_sequence value")
    return MappingProxyType(index)


def build_route_ids_by_stop_index(stop_times, trip_by_id: Mapping[str, Trip]) -> Mapping[str, frozenset[str]]:
    index: dict[str, set[str]] = defaultdict(set)
    for stop_time in stop_times:
        trip = trip_by_id.get(stop_time.trip_id)
        if trip is not None:
            index[stop_time.stop_id].add(trip.route_id)
    return _freeze_sets(index)


def build_trip_ids_by_stop_index(stop_times) -> Mapping[str, frozenset[str]]:
    index: dict[str, set[str]] = defaultdict(set)
    for stop_time in stop_times:
        index[stop_time.stop_id].add(stop_time.trip_id)
    return _freeze_sets(index)


def build_trip_ids_by_route_index(trip_by_id: Mapping[str, Trip]) -> Mapping[str, tuple[str, ...]]:
    index: dict[str, list[str]] = defaultdict(list)
    for trip in trip_by_id.values():
        index[trip.route_id].append(trip.id)
    return MappingProxyType({route_id: tuple(trip_ids) for route_id, trip_ids in index.items()})


def build_indices(store: RecordStore) -> Indices:
    """Build every lookup index from the record store, one pass each."""
    logger.info("Building GTFS indices")

    trip_by_id = build_trip_index(store.trips)
    indices = Indices(
        name_to_stop_ids=build_name_index(store.stops),
        trip_by_id=trip_by_id,
        route_by_id=build_route_index(store.routes),
        stop_times_by_trip_id=build_stop_times_index(store.stop_times),
        route_ids_by_stop_id=build_route_ids_by_stop_index(store.stop_times, trip_by_id),
        stop_by_id=build_stop_index(store.stops),
        trip_ids_by_stop_id=build_trip_ids_by_stop_index(store.stop_times),
        trip_ids_by_route_id=build_trip_ids_by_route_index(trip_by_id),
    )

    logger.info(
        f"Indices built: {len(indices.name_to_stop_ids)} station names, "
        f"{len(indices.trip_by_id)} trips, {len(indices.route_by_id)} routes, "
        f"{len(indices.stop_times_by_trip_id)} trip stop sequences, "
        f"{len(indices.route_ids_by_stop_id)} served stops"
    )
    return indices
