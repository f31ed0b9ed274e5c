import logging
import os
from typing import Optional

import pandas as pd

logger = logging.getLogger("trainbot.gtfs")

DEFAULT_DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "gtfs")

FEED_FILES = {
    "stops": "stops.txt",
    "routes": "routes.txt",
    "trips": "trips.txt",
    "stop_times": "stop_times.txt",
}


def _get_data_dir() -> str:
    return os.getenv("GTFS_DATA_DIR", "") or DEFAULT_DATA_DIR


def read_feed_file(path: str) -> list[dict[str, str]]:
    """Read one GTFS text file into row dicts. Every value stays a string.

    A missing or unreadable file yields no rows rather than an error.
    """
    if not os.path.exists(path):
        logger.warning(f"GTFS file not found: {path}")
        return []

    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    except Exception as e:
        logger.error(f"Error reading GTFS file {path}: {e}")
        return []

    df.columns = [str(c).strip() for c in df.columns]
    return df.to_dict("records")


def load_gtfs_rows(data_dir: Optional[str] = None) -> dict[str, list[dict[str, str]]]:
    """Load the four feed tables the core needs, keyed by table name."""
    data_dir = data_dir or _get_data_dir()
    logger.info(f"Loading GTFS feed from {data_dir}")

    rows: dict[str, list[dict[str, str]]] = {}
    for key, fname in FEED_FILES.items():
        rows[key] = read_feed_file(os.path.join(data_dir, fname))
        logger.info(f"Loaded {key}: {len(rows[key])} rows")
    return rows
