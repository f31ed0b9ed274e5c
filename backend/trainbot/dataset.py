"""Load phase: read the feed, build the store and indices, return one snapshot.

A `TransitDataset` is built completely before anyone sees it. Readers hold a
reference to the snapshot they started with; a reload publishes a new one.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from trainbot.connections import ConnectionQueryEngine
from trainbot.gtfs_parser import load_gtfs_rows
from trainbot.indexing import Indices, build_indices
from trainbot.models import DatasetStatus
from trainbot.store import RecordStore, Row, build_record_store

logger = logging.getLogger("trainbot.dataset")


@dataclass(frozen=True)
class TransitDataset:
    store: RecordStore
    indices: Indices
    engine: ConnectionQueryEngine
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def status(self) -> DatasetStatus:
        return DatasetStatus(
            ready=True,
            loaded_at=self.loaded_at.isoformat(),
            counts=self.store.counts(),
        )


def build_dataset(
    stop_rows: Iterable[Row] = (),
    route_rows: Iterable[Row] = (),
    trip_rows: Iterable[Row] = (),
    stop_time_rows: Iterable[Row] = (),
    alias_map: Optional[Mapping[str, str]] = None,
) -> TransitDataset:
    store = build_record_store(stop_rows, route_rows, trip_rows, stop_time_rows, alias_map)
    indices = build_indices(store)
    dataset = TransitDataset(store=store, indices=indices, engine=ConnectionQueryEngine(store, indices))

    if logger.isEnabledFor(logging.DEBUG):
        for station in dataset.engine.station_routes():
            routes = ", ".join(station.route_names) or "no routes"
            logger.debug(f"Station {station.name}: {routes}")
    return dataset


def load_dataset(data_dir: Optional[str] = None) -> TransitDataset:
    """Blocking load of the GTFS feed in `data_dir` (or GTFS_DATA_DIR)."""
    rows = load_gtfs_rows(data_dir)
    dataset = build_dataset(
        stop_rows=rows.get("stops", []),
        route_rows=rows.get("routes", []),
        trip_rows=rows.get("trips", []),
        stop_time_rows=rows.get("stop_times", []),
    )
    logger.info(f"GTFS dataset ready: {dataset.store.counts()}")
    return dataset
