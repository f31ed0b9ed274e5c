from __future__ import annotations

from enum import Enum
from typing import NewType, Optional
from uuid import UUID, uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# Opaque direction token from trips.txt ("0"/"1" for BART). Compared verbatim,
# never interpreted as a number: other feeds may use different conventions.
DirectionId = NewType("DirectionId", str)


# --- GTFS records (immutable once loaded) ---


class Stop(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    latitude: str = ""  # raw text from the feed, parsed by consumers
    longitude: str = ""
    alias_abbreviation: Optional[str] = None


class Route(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    short_name: str = ""
    long_name: str = ""
    description: str = ""


class Trip(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    route_id: str
    direction_id: DirectionId = DirectionId("")
    headsign: str = ""


class StopTime(BaseModel):
    model_config = ConfigDict(frozen=True)

    trip_id: str
    stop_id: str
    sequence: str = ""  # integer text; may be malformed
    arrival_time: str = ""
    departure_time: str = ""


# --- Query results ---


class Coordinate(BaseModel):
    lat: float
    lng: float


class NearbyStop(BaseModel):
    stop: Stop
    distance_m: float


class TripPassage(BaseModel):
    """A logical service calling at a station (deduplicated by headsign + direction)."""

    headsign: str
    direction_id: DirectionId


class ConnectingTrip(BaseModel):
    trip_id: str
    headsign: str
    direction_id: DirectionId


class ConnectingRoute(BaseModel):
    route: Route
    direction_id: DirectionId


class Station(BaseModel):
    abbr: str
    name: str


class StationRoutes(BaseModel):
    name: str
    route_names: list[str] = Field(default_factory=list)


class DirectionStops(BaseModel):
    direction_id: DirectionId
    stop_names: list[str] = Field(default_factory=list)


class RouteDirections(BaseModel):
    route: Route
    directions: list[DirectionStops] = Field(default_factory=list)


# --- HTTP responses ---


class NearbyStopResult(BaseModel):
    stop_id: str
    stop_name: str
    abbr: Optional[str] = None
    lat: float
    lng: float
    distance_m: float
    distance_miles: float
    walking_minutes: float


class NearbyStopsResponse(BaseModel):
    stops: list[NearbyStopResult]


class StopsAfterResponse(BaseModel):
    trip_id: str
    after_stop_id: str
    stop_names: list[str]


class DatasetStatus(BaseModel):
    ready: bool
    loaded_at: Optional[str] = None
    counts: dict[str, int] = Field(default_factory=dict)


# --- BART legacy API payloads (camelCase keys on the wire) ---


class BartEstimate(BaseModel):
    minutes: str
    platform: Optional[str] = None
    direction: str = ""
    length: Optional[str] = None
    hexcolor: Optional[str] = None


class BartETD(BaseModel):
    destination: str
    abbreviation: str
    estimate: list[BartEstimate] = Field(default_factory=list)


class BartScheduleItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # The JSON flavour of stnsched prefixes XML attributes with "@"
    orig_time: str = Field(validation_alias=AliasChoices("origTime", "@origTime"))
    train_head_station: str = Field(
        validation_alias=AliasChoices("trainHeadStation", "@trainHeadStation")
    )


class DeparturesResponse(BaseModel):
    station: str
    direction: Optional[str] = None
    etds: list[BartETD]


# --- Chat ---


class IntentType(str, Enum):
    NEXT_TRAIN = "next_train"
    NEXT_CONNECTING_TRAINS = "next_connecting_trains"
    NEARBY_STOPS = "nearby_stops"
    UNDEFINED = "undefined"


class TransitIntent(BaseModel):
    intent: IntentType = IntentType.UNDEFINED
    origin: Optional[str] = None
    destination: Optional[str] = None
    direction: Optional[str] = None  # "North" / "South"


class ChatMessage(BaseModel):
    role: str  # "user" or "assistant"
    content: str


class ChatRequest(BaseModel):
    message: str
    history: list[ChatMessage] = Field(default_factory=list)
    location: Optional[Coordinate] = None


class ChatResponse(BaseModel):
    message: str
    suggested_actions: list[str] = Field(default_factory=list)


# --- Favorites ---


class FavoriteType(str, Enum):
    ROUTE = "route"
    STATION = "station"


class FavoriteRoute(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    query: str
    name: str
    type: FavoriteType = FavoriteType.ROUTE
    origin_station_abbr: Optional[str] = None
    destination_station_abbr: Optional[str] = None
    direction: Optional[str] = None


class FavoriteRunRequest(BaseModel):
    location: Optional[Coordinate] = None
