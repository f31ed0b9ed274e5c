"""Pytest configuration and fixtures.

The sample feed is a five-station slice of BART. Row order matters: several
tests rely on load order (first platform wins, first trip per direction).
"""

import csv
from pathlib import Path

import pytest

from trainbot.dataset import TransitDataset, build_dataset

STOP_ROWS = [
    {"stop_id": "DALY_1", "stop_name": "Daly City", "stop_lat": "37.70612", "stop_lon": "-122.46907"},
    {"stop_id": "BALB_1", "stop_name": "Balboa Park", "stop_lat": "37.72157", "stop_lon": "-122.44741"},
    {"stop_id": "POWL_1", "stop_name": "Powell Street", "stop_lat": "37.78447", "stop_lon": "-122.40797"},
    {"stop_id": "POWL_2", "stop_name": "Powell Street", "stop_lat": "37.78460", "stop_lon": "-122.40780"},
    {"stop_id": "EMBR_1", "stop_name": "Embarcadero", "stop_lat": "37.79276", "stop_lon": "-122.39703"},
    {"stop_id": "GLEN_1", "stop_name": "Glen Park", "stop_lat": "n/a", "stop_lon": ""},
    {"stop_id": "ORPHAN", "stop_name": "Orphan Stop", "stop_lat": "37.80000", "stop_lon": "-122.40000"},
    {"stop_id": "", "stop_name": "No Id", "stop_lat": "37.0", "stop_lon": "-122.0"},
]

ROUTE_ROWS = [
    {"route_id": "R1", "route_short_name": "YL", "route_long_name": "Daly City - Richmond", "route_desc": ""},
    {"route_id": "R2", "route_short_name": "RD", "route_long_name": "Millbrae - Richmond", "route_desc": ""},
]

TRIP_ROWS = [
    {"trip_id": "T1", "route_id": "R1", "direction_id": "0", "trip_headsign": "Richmond"},
    {"trip_id": "T2", "route_id": "R1", "direction_id": "1", "trip_headsign": "Daly City"},
    {"trip_id": "T3", "route_id": "R2", "direction_id": "0", "trip_headsign": "Richmond"},
    {"trip_id": "T4", "route_id": "R2", "direction_id": "0", "trip_headsign": "Richmond"},
    # Same nominal direction as T1 but with a stray space: must never match "0"
    {"trip_id": "T5", "route_id": "R1", "direction_id": " 0", "trip_headsign": "Richmond"},
    {"trip_id": "T6", "route_id": "", "direction_id": "0", "trip_headsign": "Nowhere"},
]


def _st(trip_id: str, stop_id: str, sequence: str) -> dict:
    return {
        "trip_id": trip_id,
        "stop_id": stop_id,
        "stop_sequence": sequence,
        "arrival_time": "08:00:00",
        "departure_time": "08:00:30",
    }


STOP_TIME_ROWS = [
    # T1 deliberately out of order in the feed
    _st("T1", "POWL_1", "3"),
    _st("T1", "DALY_1", "1"),
    _st("T1", "EMBR_1", "4"),
    _st("T1", "BALB_1", "2"),
    _st("T2", "EMBR_1", "1"),
    _st("T2", "POWL_2", "2"),
    _st("T2", "BALB_1", "3"),
    _st("T2", "DALY_1", "4"),
    _st("T3", "EMBR_1", "x"),
    _st("T3", "BALB_1", "1"),
    _st("T3", "POWL_1", "2"),
    _st("T4", "BALB_1", "5"),
    _st("T4", "POWL_1", "6"),
    _st("T5", "DALY_1", "1"),
    _st("T5", "GLEN_1", "2"),
    _st("T5", "EMBR_1", "3"),
    _st("", "DALY_1", "9"),
]


def write_feed(directory: Path) -> Path:
    """Write the sample feed as GTFS text files under `directory`."""
    tables = {
        "stops.txt": STOP_ROWS,
        "routes.txt": ROUTE_ROWS,
        "trips.txt": TRIP_ROWS,
        "stop_times.txt": STOP_TIME_ROWS,
    }
    directory.mkdir(parents=True, exist_ok=True)
    for fname, rows in tables.items():
        with open(directory / fname, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
            writer.writeheader()
            writer.writerows(rows)
    return directory


@pytest.fixture
def dataset() -> TransitDataset:
    """Sample feed built into a ready snapshot."""
    return build_dataset(STOP_ROWS, ROUTE_ROWS, TRIP_ROWS, STOP_TIME_ROWS)


@pytest.fixture
def feed_dir(tmp_path: Path) -> Path:
    """Sample feed on disk."""
    return write_feed(tmp_path / "gtfs")


@pytest.fixture(autouse=True)
def no_anthropic(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests on the keyword parser and the public BART key."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("BART_API_KEY", raising=False)
    monkeypatch.delenv("BART_API_BASE_URL", raising=False)
