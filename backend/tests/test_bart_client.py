"""Tests for the BART real-time client, against a mocked transport."""

import asyncio

import httpx
import pytest

from trainbot.bart_client import (
    DEMO_API_KEY,
    BartDecodingError,
    BartNetworkError,
    fetch_etd,
    fetch_station_schedule,
    filter_by_direction,
)
from trainbot.models import BartETD

ETD_PAYLOAD = {
    "root": {
        "station": [
            {
                "name": "Powell St.",
                "abbr": "POWL",
                "etd": [
                    {
                        "destination": "Richmond",
                        "abbreviation": "RICH",
                        "estimate": [
                            {"minutes": "4", "platform": "2", "direction": "North", "length": "8", "hexcolor": "#ff9933"},
                            {"minutes": "19", "platform": "2", "direction": "North", "length": "8", "hexcolor": "#ff9933"},
                        ],
                    },
                    {
                        "destination": "Daly City",
                        "abbreviation": "DALY",
                        "estimate": [
                            {"minutes": "Leaving", "platform": "1", "direction": "South", "length": "10", "hexcolor": "#ffff33"},
                        ],
                    },
                ],
            }
        ]
    }
}

SCHEDULE_PAYLOAD = {
    "root": {
        "station": {
            "name": "Powell St.",
            "abbr": "POWL",
            "item": [
                {"@line": "ROUTE 7", "@trainHeadStation": "RICH", "@origTime": "4:52 PM"},
                {"@line": "ROUTE 8", "@trainHeadStation": "DALY", "@origTime": "4:58 PM"},
            ],
        }
    }
}


def _run(handler, call):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await call(client)

    return asyncio.run(go())


def test_fetch_etd_builds_request() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json=ETD_PAYLOAD)

    etds = _run(handler, lambda client: fetch_etd("POWL", client))
    assert seen["url"].path == "/api/etd.aspx"
    assert seen["url"].params["cmd"] == "etd"
    assert seen["url"].params["orig"] == "powl"
    assert seen["url"].params["key"] == DEMO_API_KEY
    assert seen["url"].params["json"] == "y"
    assert [etd.abbreviation for etd in etds] == ["RICH", "DALY"]
    assert etds[0].estimate[0].minutes == "4"


def test_fetch_etd_uses_configured_key_and_base_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BART_API_KEY", "secret")
    monkeypatch.setenv("BART_API_BASE_URL", "https://bart.example.test/api/")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json=ETD_PAYLOAD)

    _run(handler, lambda client: fetch_etd("embr", client))
    assert seen["url"].host == "bart.example.test"
    assert seen["url"].params["key"] == "secret"


def test_fetch_etd_without_departures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"root": {"station": [{"name": "Powell St.", "abbr": "POWL"}]}})

    assert _run(handler, lambda client: fetch_etd("powl", client)) == []


def test_fetch_station_schedule_reads_attribute_keys() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["cmd"] == "stnsched"
        return httpx.Response(200, json=SCHEDULE_PAYLOAD)

    schedule = _run(handler, lambda client: fetch_station_schedule("powl", client))
    assert [(item.orig_time, item.train_head_station) for item in schedule] == [
        ("4:52 PM", "RICH"),
        ("4:58 PM", "DALY"),
    ]


def test_http_error_is_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="maintenance")

    with pytest.raises(BartNetworkError):
        _run(handler, lambda client: fetch_etd("powl", client))


def test_transport_error_is_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(BartNetworkError):
        _run(handler, lambda client: fetch_etd("powl", client))


def test_non_json_is_decoding_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>nope</html>")

    with pytest.raises(BartDecodingError):
        _run(handler, lambda client: fetch_etd("powl", client))


def test_wrong_shape_is_decoding_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"root": {"station": [{"etd": [{"abbreviation": "RICH"}]}]}})

    with pytest.raises(BartDecodingError):
        _run(handler, lambda client: fetch_etd("powl", client))


def test_filter_by_direction() -> None:
    """Only matching estimates survive; destinations left empty are dropped."""
    etds = [BartETD.model_validate(item) for item in ETD_PAYLOAD["root"]["station"][0]["etd"]]

    north = filter_by_direction(etds, "north")
    assert [etd.abbreviation for etd in north] == ["RICH"]
    assert len(north[0].estimate) == 2

    assert [etd.abbreviation for etd in filter_by_direction(etds, "South")] == ["DALY"]
    assert filter_by_direction(etds, None) == etds
    assert filter_by_direction(etds, "All") == etds
