import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query

from trainbot.models import (
    ChatRequest,
    ChatResponse,
    ConnectingRoute,
    ConnectingTrip,
    DatasetStatus,
    DeparturesResponse,
    DirectionId,
    FavoriteRoute,
    FavoriteRunRequest,
    NearbyStopResult,
    NearbyStopsResponse,
    RouteDirections,
    Station,
    StationRoutes,
    StopsAfterResponse,
    TripPassage,
)

logger = logging.getLogger("trainbot.routes")

router = APIRouter()


def _get_state():
    from trainbot.main import app_state
    return app_state


def _get_dataset():
    dataset = _get_state().get("dataset")
    if dataset is None:
        raise HTTPException(status_code=503, detail="GTFS data is still loading")
    return dataset


def _get_favorites():
    from trainbot.favorites import FavoritesStore

    state = _get_state()
    if "favorites" not in state:
        state["favorites"] = FavoritesStore()
    return state["favorites"]


@router.get("/health")
async def health():
    return {"status": "ok", "service": "TrainBot API"}


@router.get("/gtfs/status", response_model=DatasetStatus)
async def gtfs_status():
    dataset = _get_state().get("dataset")
    if dataset is None:
        return DatasetStatus(ready=False)
    return dataset.status()


@router.post("/gtfs/reload", response_model=DatasetStatus)
async def gtfs_reload():
    """Rebuild the GTFS snapshot from disk and swap it in once complete."""
    from trainbot.main import reload_dataset

    try:
        dataset = await reload_dataset(_get_state())
    except Exception as e:
        logger.error(f"GTFS reload failed: {e}")
        raise HTTPException(status_code=500, detail="GTFS reload failed")
    return dataset.status()


@router.get("/stops/nearby", response_model=NearbyStopsResponse)
async def nearby_stops(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_m: float = Query(1000.0, gt=0),
):
    """Stops within radius_m, one per station name, nearest first."""
    from trainbot.geo import find_nearby_stops, meters_to_miles, meters_to_walking_minutes, stop_coordinates

    dataset = _get_dataset()
    results = []
    for item in find_nearby_stops(dataset.store.stops, lat, lng, radius_m):
        stop_lat, stop_lng = stop_coordinates(item.stop)
        results.append(
            NearbyStopResult(
                stop_id=item.stop.id,
                stop_name=item.stop.name,
                abbr=item.stop.alias_abbreviation,
                lat=stop_lat,
                lng=stop_lng,
                distance_m=round(item.distance_m, 1),
                distance_miles=round(meters_to_miles(item.distance_m), 2),
                walking_minutes=round(meters_to_walking_minutes(item.distance_m), 1),
            )
        )
    return NearbyStopsResponse(stops=results)


@router.get("/stations", response_model=list[StationRoutes])
async def list_stations():
    return _get_dataset().engine.station_routes()


@router.get("/stations/resolve", response_model=Station)
async def resolve_station(name: str = Query(..., min_length=1)):
    station = _get_dataset().engine.resolve_station(name)
    if station is None:
        raise HTTPException(status_code=404, detail=f"Unknown station: {name}")
    return station


@router.get("/stations/trips", response_model=list[TripPassage])
async def station_trips(name: str = Query(..., min_length=1)):
    return _get_dataset().engine.trips_through_station(name)


@router.get("/connections/trips", response_model=list[ConnectingTrip])
async def connection_trips(origin: str = Query(...), destination: str = Query(...)):
    return _get_dataset().engine.connecting_trips(origin, destination)


@router.get("/connections/routes", response_model=list[ConnectingRoute])
async def connection_routes(
    origin: str = Query(...),
    destination: str = Query(...),
    direction: str = Query(..., description="direction_id token, matched verbatim"),
):
    return _get_dataset().engine.connecting_routes(origin, destination, DirectionId(direction))


@router.get("/trips/{trip_id}/stops-after", response_model=StopsAfterResponse)
async def stops_after(trip_id: str, stop_id: str = Query(...)):
    names = _get_dataset().engine.stops_after(trip_id, stop_id)
    return StopsAfterResponse(trip_id=trip_id, after_stop_id=stop_id, stop_names=names)


@router.get("/routes", response_model=list[RouteDirections])
async def list_routes():
    return _get_dataset().engine.route_directions()


@router.get("/departures/{abbr}", response_model=DeparturesResponse)
async def departures(abbr: str, direction: Optional[str] = Query(None)):
    """Live ETDs from BART, optionally narrowed to North/South."""
    from trainbot.bart_client import BartAPIError, fetch_etd, filter_by_direction

    try:
        etds = await fetch_etd(abbr, _get_state().get("http_client"))
    except BartAPIError as e:
        logger.warning(f"Departures for {abbr} unavailable: {e}")
        raise HTTPException(status_code=502, detail="BART real-time service unavailable")
    return DeparturesResponse(station=abbr, direction=direction, etds=filter_by_direction(etds, direction))


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest):
    from trainbot.chatbot import respond

    state = _get_state()
    return await respond(
        request.message,
        request.location,
        state.get("dataset"),
        state.get("http_client"),
        history=request.history,
    )


@router.get("/favorites", response_model=list[FavoriteRoute])
async def list_favorites():
    return _get_favorites().list()


@router.post("/favorites", response_model=FavoriteRoute)
async def add_favorite(favorite: FavoriteRoute):
    return _get_favorites().add(favorite)


@router.delete("/favorites/{favorite_id}")
async def delete_favorite(favorite_id: UUID):
    if not _get_favorites().remove(favorite_id):
        raise HTTPException(status_code=404, detail="Favorite not found")
    return {"deleted": str(favorite_id)}


@router.post("/favorites/{favorite_id}/run", response_model=ChatResponse)
async def run_favorite(favorite_id: UUID, request: Optional[FavoriteRunRequest] = None):
    from trainbot.chatbot import run_favorite as run

    favorite = _get_favorites().get(favorite_id)
    if favorite is None:
        raise HTTPException(status_code=404, detail="Favorite not found")

    state = _get_state()
    location = request.location if request else None
    return await run(favorite, location, state.get("dataset"), state.get("http_client"))
