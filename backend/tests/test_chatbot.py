"""Tests for the chat responder with BART mocked out."""

import asyncio

import httpx

from test_bart_client import ETD_PAYLOAD, SCHEDULE_PAYLOAD
from trainbot.chatbot import format_departures, respond, run_favorite
from trainbot.dataset import TransitDataset
from trainbot.models import BartETD, Coordinate, FavoriteRoute


def _bart_handler(etd_payload=ETD_PAYLOAD, schedule_payload=SCHEDULE_PAYLOAD):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("etd.aspx"):
            return httpx.Response(200, json=etd_payload)
        return httpx.Response(200, json=schedule_payload)

    return handler


def _ask(message, dataset, handler=None, location=None):
    async def go():
        transport = httpx.MockTransport(handler or _bart_handler())
        async with httpx.AsyncClient(transport=transport) as client:
            return await respond(message, location, dataset, client)

    return asyncio.run(go())


def test_format_departures_groups_by_destination() -> None:
    etds = [BartETD.model_validate(item) for item in ETD_PAYLOAD["root"]["station"][0]["etd"]]
    assert format_departures(etds) == (
        "To Richmond:\n"
        "  - 4 min (Platform 2)\n"
        "  - 19 min (Platform 2)\n"
        "To Daly City:\n"
        "  - Leaving min (Platform 1)"
    )


def test_nearby_stops_reply(dataset: TransitDataset) -> None:
    reply = _ask("nearby bart", dataset, location=Coordinate(lat=37.78460, lng=-122.40780))
    assert reply.message.startswith("Nearby BART stops:")
    assert "- Powell Street (0.01 miles, approx. 0 min walk)" in reply.message
    assert "Embarcadero" not in reply.message


def test_nearby_stops_needs_location(dataset: TransitDataset) -> None:
    reply = _ask("nearby bart", dataset)
    assert reply.message == "I need your location to find nearby BART stops."


def test_connecting_trains_filters_by_headsign(dataset: TransitDataset) -> None:
    """Only Richmond-bound trains serve Daly City -> Embarcadero."""
    reply = _ask("next Daly City BART to Embarcadero", dataset)
    assert reply.message.startswith("Next trains from Daly City towards Embarcadero:")
    assert "To Richmond:" in reply.message
    assert "To Daly City:" not in reply.message
    assert "Lines: Daly City - Richmond" in reply.message


def test_connecting_trains_unknown_station(dataset: TransitDataset) -> None:
    reply = _ask("next Daly City BART to Atlantis", dataset)
    assert "valid origin and destination" in reply.message


def test_connecting_trains_wrong_way(dataset: TransitDataset) -> None:
    """Glen Park is only reachable from Daly City, never the other way."""
    reply = _ask("next Glen Park BART to Daly City", dataset)
    assert reply.message == "No direct trains found from Glen Park to Daly City in the schedule."


def test_next_train_with_direction(dataset: TransitDataset) -> None:
    reply = _ask("next Powell BART going south", dataset)
    assert reply.message.startswith("Next trains for Powell Street going South:")
    assert "To Daly City:" in reply.message
    assert "To Richmond:" not in reply.message


def test_next_train_falls_back_to_schedule(dataset: TransitDataset) -> None:
    empty = {"root": {"station": [{"name": "Powell St.", "abbr": "POWL"}]}}
    reply = _ask("next Powell BART", dataset, handler=_bart_handler(etd_payload=empty))
    assert reply.message == (
        "No real-time trains found for Powell Street going all directions. Next scheduled train at 4:52 PM."
    )


def test_bart_outage_degrades_politely(dataset: TransitDataset) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    reply = _ask("next Powell BART", dataset, handler=handler)
    assert "couldn't reach BART" in reply.message


def test_undefined_query_gets_help(dataset: TransitDataset) -> None:
    reply = _ask("hello there", dataset)
    assert reply.message.startswith("I can help you find nearby BART stops")
    assert reply.suggested_actions


def test_not_ready(dataset: TransitDataset) -> None:
    reply = _ask("next Powell BART", None)
    assert "still loading" in reply.message


def test_run_favorite_replays_query(dataset: TransitDataset) -> None:
    favorite = FavoriteRoute(query="next Powell BART going north", name="Commute home")

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(_bart_handler())) as client:
            return await run_favorite(favorite, None, dataset, client)

    reply = asyncio.run(go())
    assert reply.message.startswith("Next trains for Powell Street going North:")
