"""Record store: the raw GTFS entities as loaded, in load order."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Optional

from trainbot.aliases import BART_ABBREVIATION_MAP
from trainbot.models import DirectionId, Route, Stop, StopTime, Trip

logger = logging.getLogger("trainbot.store")

Row = Mapping[str, Any]


@dataclass(frozen=True)
class RecordStore:
    stops: tuple[Stop, ...] = ()
    routes: tuple[Route, ...] = ()
    trips: tuple[Trip, ...] = ()
    stop_times: tuple[StopTime, ...] = ()
    aliases: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def counts(self) -> dict[str, int]:
        return {
            "stops": len(self.stops),
            "routes": len(self.routes),
            "trips": len(self.trips),
            "stop_times": len(self.stop_times),
        }


def _text(row: Row, key: str) -> str:
    value = row.get(key)
    if value is None:
        return ""
    return str(value)


def _stop_from_row(row: Row, alias_map: Mapping[str, str]) -> Optional[Stop]:
    stop_id = _text(row, "stop_id").strip()
    if not stop_id:
        return None
    name = _text(row, "stop_name")
    return Stop(
        id=stop_id,
        name=name,
        latitude=_text(row, "stop_lat"),
        longitude=_text(row, "stop_lon"),
        alias_abbreviation=alias_map.get(name),
    )


def _route_from_row(row: Row) -> Optional[Route]:
    route_id = _text(row, "route_id").strip()
    if not route_id:
        return None
    return Route(
        id=route_id,
        short_name=_text(row, "route_short_name"),
        long_name=_text(row, "route_long_name"),
        description=_text(row, "route_desc"),
    )


def _trip_from_row(row: Row) -> Optional[Trip]:
    trip_id = _text(row, "trip_id").strip()
    route_id = _text(row, "route_id").strip()
    if not trip_id or not route_id:
        return None
    return Trip(
        id=trip_id,
        route_id=route_id,
        direction_id=DirectionId(_text(row, "direction_id")),
        headsign=_text(row, "trip_headsign"),
    )


def _stop_time_from_row(row: Row) -> Optional[StopTime]:
    trip_id = _text(row, "trip_id").strip()
    stop_id = _text(row, "stop_id").strip()
    if not trip_id or not stop_id:
        return None
    return StopTime(
        trip_id=trip_id,
        stop_id=stop_id,
        sequence=_text(row, "stop_sequence"),
        arrival_time=_text(row, "arrival_time"),
        departure_time=_text(row, "departure_time"),
    )


def _materialize(kind: str, rows: Iterable[Row], convert) -> list:
    records = []
    skipped = 0
    for line, row in enumerate(rows, start=1):
        record = convert(row)
        if record is None:
            skipped += 1
            logger.debug(f"Skipping malformed {kind} row {line}: {dict(row)}")
            continue
        records.append(record)
    if skipped:
        logger.warning(f"Skipped {skipped} malformed {kind} rows")
    return records


def build_record_store(
    stop_rows: Iterable[Row] = (),
    route_rows: Iterable[Row] = (),
    trip_rows: Iterable[Row] = (),
    stop_time_rows: Iterable[Row] = (),
    alias_map: Optional[Mapping[str, str]] = None,
) -> RecordStore:
    """Materialize flat feed rows into an immutable RecordStore.

    Stops that no stop_time references are dropped: the store only keeps
    operationally relevant stations.
    """
    if alias_map is None:
        alias_map = BART_ABBREVIATION_MAP
    aliases = MappingProxyType(dict(alias_map))

    stop_times = _materialize("stop_time", stop_time_rows, _stop_time_from_row)
    visited_stop_ids = {st.stop_id for st in stop_times}

    all_stops = _materialize("stop", stop_rows, lambda row: _stop_from_row(row, aliases))
    stops = [stop for stop in all_stops if stop.id in visited_stop_ids]
    if len(stops) != len(all_stops):
        logger.info(f"Dropped {len(all_stops) - len(stops)} stops not visited by any trip")

    routes = _materialize("route", route_rows, _route_from_row)
    trips = _materialize("trip", trip_rows, _trip_from_row)

    store = RecordStore(
        stops=tuple(stops),
        routes=tuple(routes),
        trips=tuple(trips),
        stop_times=tuple(stop_times),
        aliases=aliases,
    )
    logger.info(f"Record store ready: {store.counts()}")
    return store
