import logging
from typing import Optional

import httpx

from trainbot.aliases import abbreviation_for_headsign
from trainbot.bart_client import BartAPIError, fetch_etd, fetch_station_schedule, filter_by_direction
from trainbot.dataset import TransitDataset
from trainbot.geo import DEFAULT_RADIUS_M, find_nearby_stops, meters_to_miles, meters_to_walking_minutes
from trainbot.models import BartETD, ChatMessage, ChatResponse, Coordinate, FavoriteRoute, IntentType, TransitIntent
from trainbot.nlp_service import parse_query

logger = logging.getLogger("trainbot.chat")

HELP_TEXT = (
    "I can help you find nearby BART stops or next train departures. "
    "Try asking 'nearby BART', 'next Daly City BART going North' or 'next Powell BART to Colma'."
)


def format_departures(etds: list[BartETD]) -> str:
    """Group estimates by destination, one line per departing train."""
    grouped: dict[str, list[BartETD]] = {}
    for etd in etds:
        grouped.setdefault(etd.destination, []).append(etd)

    lines = []
    for destination, etds_for_destination in grouped.items():
        lines.append(f"To {destination}:")
        for etd in etds_for_destination:
            for estimate in etd.estimate:
                lines.append(f"  - {estimate.minutes} min (Platform {estimate.platform or '?'})")
    return "\n".join(lines)


def _suggestions(intent: TransitIntent) -> list[str]:
    if intent.intent == IntentType.NEARBY_STOPS:
        return ["Next trains at the closest stop", "Save as favorite"]
    if intent.intent in (IntentType.NEXT_TRAIN, IntentType.NEXT_CONNECTING_TRAINS):
        return ["Refresh departures", "Save as favorite", "Nearby BART"]
    return ["Nearby BART", "Next Powell BART", "Next Powell BART to Colma"]


def _nearby_stops_reply(location: Optional[Coordinate], dataset: TransitDataset) -> str:
    if location is None:
        return "I need your location to find nearby BART stops."

    nearby = find_nearby_stops(dataset.store.stops, location.lat, location.lng, DEFAULT_RADIUS_M)
    if not nearby:
        return "No nearby BART stops found."

    lines = ["Nearby BART stops:"]
    for item in nearby:
        miles = meters_to_miles(item.distance_m)
        minutes = meters_to_walking_minutes(item.distance_m)
        lines.append(f"- {item.stop.name} ({miles:.2f} miles, approx. {minutes:.0f} min walk)")
    return "\n".join(lines)


async def _connecting_trains_reply(
    intent: TransitIntent, dataset: TransitDataset, http_client: Optional[httpx.AsyncClient]
) -> str:
    engine = dataset.engine
    origin = engine.resolve_station(intent.origin) if intent.origin else None
    destination = engine.resolve_station(intent.destination) if intent.destination else None
    if origin is None or destination is None:
        logger.info(f"Could not resolve stations: origin={intent.origin!r} destination={intent.destination!r}")
        return "Please specify a valid origin and destination, for example: 'next Powell BART to Colma'."

    trips = engine.connecting_trips(origin.name, destination.name)
    if not trips:
        return f"No direct trains found from {origin.name} to {destination.name} in the schedule."

    valid_abbrs = set()
    for trip in trips:
        abbr = abbreviation_for_headsign(trip.headsign, dataset.store.aliases)
        if abbr:
            valid_abbrs.add(abbr.lower())
    logger.debug(f"Headsign abbreviations serving {origin.abbr}->{destination.abbr}: {sorted(valid_abbrs)}")

    etds = await fetch_etd(origin.abbr, http_client)
    if not etds:
        return f"Could not fetch real-time departures for {origin.name}."

    matching = [etd for etd in etds if etd.abbreviation.lower() in valid_abbrs]
    if not matching:
        return f"No real-time trains from {origin.name} are heading towards {destination.name} at the moment."

    reply = f"Next trains from {origin.name} towards {destination.name}:\n{format_departures(matching)}"

    direction_id = engine.travel_direction(origin, destination)
    if direction_id is not None:
        routes = engine.connecting_routes(origin.name, destination.name, direction_id)
        if routes:
            reply += "\nLines: " + ", ".join(r.route.long_name or r.route.short_name for r in routes)
    return reply


async def _next_train_reply(
    intent: TransitIntent, dataset: TransitDataset, http_client: Optional[httpx.AsyncClient]
) -> str:
    origin = dataset.engine.resolve_station(intent.origin) if intent.origin else None
    if origin is None:
        return "Which station? Try 'next Daly City BART'."

    direction_text = intent.direction or "all directions"
    etds = await fetch_etd(origin.abbr, http_client)
    if etds:
        heading = f"Next trains for {origin.name}"
        if intent.direction:
            heading += f" going {intent.direction}"
        filtered = filter_by_direction(etds, intent.direction)
        if not filtered:
            return f"{heading}:\nNo trains found for this direction."
        return f"{heading}:\n{format_departures(filtered)}"

    schedule = await fetch_station_schedule(origin.abbr, http_client)
    if schedule:
        return (
            f"No real-time trains found for {origin.name} going {direction_text}. "
            f"Next scheduled train at {schedule[0].orig_time}."
        )
    return f"No trains found for {origin.name} going {direction_text}."


async def respond(
    message: str,
    location: Optional[Coordinate],
    dataset: Optional[TransitDataset],
    http_client: Optional[httpx.AsyncClient] = None,
    history: Optional[list[ChatMessage]] = None,
) -> ChatResponse:
    """Answer one chat message. Never raises: failures become a polite reply."""
    if dataset is None:
        return ChatResponse(message="Transit data is still loading. Please try again in a moment.")

    intent = await parse_query(message, history)
    logger.info(f"Chat intent: {intent.intent.value} origin={intent.origin!r} destination={intent.destination!r}")

    try:
        if intent.intent == IntentType.NEARBY_STOPS:
            reply = _nearby_stops_reply(location, dataset)
        elif intent.intent == IntentType.NEXT_CONNECTING_TRAINS:
            reply = await _connecting_trains_reply(intent, dataset, http_client)
        elif intent.intent == IntentType.NEXT_TRAIN:
            reply = await _next_train_reply(intent, dataset, http_client)
        else:
            reply = HELP_TEXT
    except BartAPIError as e:
        logger.warning(f"BART API unavailable: {e}")
        reply = "I couldn't reach BART's real-time service right now. Please try again shortly."
    except Exception as e:
        logger.error(f"Chat handling failed: {e}")
        reply = "Sorry, something went wrong while answering that. Please try again."

    return ChatResponse(message=reply, suggested_actions=_suggestions(intent))


async def run_favorite(
    favorite: FavoriteRoute,
    location: Optional[Coordinate],
    dataset: Optional[TransitDataset],
    http_client: Optional[httpx.AsyncClient] = None,
) -> ChatResponse:
    logger.info(f"Running favorite {favorite.name!r}")
    return await respond(favorite.query, location, dataset, http_client)
