import math
from collections.abc import Iterable

from trainbot.models import NearbyStop, Stop
from trainbot.parsing import coordinate_or_zero

EARTH_RADIUS_M = 6371000.0
METERS_TO_MILES = 0.000621371
WALKING_SPEED_MPS = 1.34
DEFAULT_RADIUS_M = 1000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate great-circle distance between two points in meters."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlon / 2) ** 2
    a = min(a, 1.0)  # float rounding can push antipodal points past 1
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def stop_coordinates(stop: Stop) -> tuple[float, float]:
    """A stop's (lat, lng); unparseable values read as 0.0."""
    return coordinate_or_zero(stop.latitude), coordinate_or_zero(stop.longitude)


def find_nearby_stops(
    stops: Iterable[Stop], lat: float, lng: float, radius_m: float = DEFAULT_RADIUS_M
) -> list[NearbyStop]:
    """Stops within radius_m of (lat, lng), one per display name, nearest first.

    When several platforms share a name, the first one in load order is kept,
    even if a later one is closer.
    """
    seen_names: set[str] = set()
    nearby: list[NearbyStop] = []
    for stop in stops:
        stop_lat, stop_lng = stop_coordinates(stop)
        distance = haversine_m(lat, lng, stop_lat, stop_lng)
        if distance > radius_m:
            continue
        if stop.name in seen_names:
            continue
        seen_names.add(stop.name)
        nearby.append(NearbyStop(stop=stop, distance_m=distance))

    nearby.sort(key=lambda n: n.distance_m)
    return nearby


def meters_to_miles(meters: float) -> float:
    return meters * METERS_TO_MILES


def meters_to_walking_minutes(meters: float) -> float:
    return meters / WALKING_SPEED_MPS / 60
