"""Client for BART's legacy real-time API (etd.aspx / sched.aspx)."""

import logging
import os
from typing import Optional

import httpx
from pydantic import ValidationError

from trainbot.models import BartETD, BartScheduleItem

logger = logging.getLogger("trainbot.bart")

DEFAULT_BASE_URL = "https://api.bart.gov/api"
# BART's published public key; fine for development, set BART_API_KEY in production
DEMO_API_KEY = "MW9S-E7SL-26DU-VV8V"
REQUEST_TIMEOUT = 30.0


class BartAPIError(Exception):
    """Base class for failures talking to the BART API."""


class BartNetworkError(BartAPIError):
    """Transport failure or non-2xx response."""


class BartDecodingError(BartAPIError):
    """Response body is not the payload shape we expect."""


def _get_base_url() -> str:
    return os.getenv("BART_API_BASE_URL", "") or DEFAULT_BASE_URL


def _get_api_key() -> str:
    return os.getenv("BART_API_KEY", "") or DEMO_API_KEY


async def _fetch_json(path: str, params: dict, client: Optional[httpx.AsyncClient]) -> dict:
    url = f"{_get_base_url().rstrip('/')}/{path}"
    query = {**params, "key": _get_api_key(), "json": "y"}

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as own_client:
                resp = await own_client.get(url, params=query)
        else:
            resp = await client.get(url, params=query, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        raise BartNetworkError(f"BART request to {path} failed: {e}") from e

    try:
        data = resp.json()
    except ValueError as e:
        raise BartDecodingError(f"BART response from {path} is not JSON: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("root"), dict):
        raise BartDecodingError(f"BART response from {path} has no root object")
    return data["root"]


def _first_station(root: dict) -> Optional[dict]:
    # "station" is a list for etd and a single object for stnsched
    station = root.get("station")
    if isinstance(station, list):
        return station[0] if station else None
    if isinstance(station, dict):
        return station
    return None


async def fetch_etd(abbr: str, client: Optional[httpx.AsyncClient] = None) -> list[BartETD]:
    """Real-time departure estimates at one station. Empty when nothing is running."""
    root = await _fetch_json("etd.aspx", {"cmd": "etd", "orig": abbr.lower()}, client)
    station = _first_station(root)
    if station is None:
        return []

    try:
        etds = [BartETD.model_validate(item) for item in station.get("etd", [])]
    except ValidationError as e:
        raise BartDecodingError(f"Unexpected ETD payload for {abbr}: {e}") from e

    logger.info(f"Fetched {len(etds)} ETD destinations for {abbr}")
    return etds


async def fetch_station_schedule(abbr: str, client: Optional[httpx.AsyncClient] = None) -> list[BartScheduleItem]:
    root = await _fetch_json("sched.aspx", {"cmd": "stnsched", "orig": abbr.lower()}, client)
    station = _first_station(root)
    if station is None:
        return []

    items = station.get("item", [])
    if isinstance(items, dict):
        items = [items]
    try:
        schedule = [BartScheduleItem.model_validate(item) for item in items]
    except ValidationError as e:
        raise BartDecodingError(f"Unexpected schedule payload for {abbr}: {e}") from e

    logger.info(f"Fetched {len(schedule)} scheduled departures for {abbr}")
    return schedule


def filter_by_direction(etds: list[BartETD], direction: Optional[str]) -> list[BartETD]:
    """Keep only estimates heading `direction` ("North"/"South"); drop emptied destinations."""
    if not direction or direction.lower() == "all":
        return etds

    wanted = direction.lower()
    filtered = []
    for etd in etds:
        estimates = [e for e in etd.estimate if e.direction.lower() == wanted]
        if estimates:
            filtered.append(etd.model_copy(update={"estimate": estimates}))
    return filtered
