from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import cast

import pytest
import requests

from services.banxico_client import BanxicoAPIError, BanxicoClient
from services.finnhub_client import FinnhubAPIError, FinnhubClient
from services.polygon_client import PolygonAPIError, PolygonClient
from tests.helpers.stubs import StubResponse, StubSession


def _banxico_payload(dato: str, fecha: str = "05/01/2024") -> dict[str, object]:
    return {
        "bmx": {
            "series": [
                {
                    "idSerie": "SF43718",
                    "titulo": "Tipo de cambio Pesos por dólar E.U.A. Para solventar obligaciones",
                    "datos": [{"fecha": fecha, "dato": dato}],
                }
            ]
        }
    }


def test_finnhub_parses_quote() -> None:
    stub_session = StubSession(
        StubResponse({"c": 187.44, "d": 1.2, "dp": 0.65, "h": 188.0, "l": 185.1, "o": 186.0, "pc": 186.24})
    )
    client = FinnhubClient(
        api_key="fh-key", base_url="https://example.com/api/v1", session=cast(requests.Session, stub_session)
    )

    quote = client.get_quote(symbol="AAPL")

    assert quote.current == Decimal("187.44")
    assert quote.previous_close == Decimal("186.24")
    assert not quote.is_empty
    assert stub_session.last_request == {
        "method": "GET",
        "url": "https://example.com/api/v1/quote",
        "params": {"symbol": "AAPL", "token": "fh-key"},
        "headers": None,
        "timeout": 10.0,
    }


def test_finnhub_unknown_symbol_is_an_empty_quote() -> None:
    stub_session = StubSession(StubResponse({"c": 0, "d": None, "dp": None, "h": 0, "l": 0, "o": 0, "pc": 0}))
    client = FinnhubClient(api_key="fh-key", session=cast(requests.Session, stub_session))

    assert client.get_quote(symbol="NOPE").is_empty


def test_finnhub_http_error_keeps_status_and_payload() -> None:
    stub_session = StubSession(StubResponse({"error": "API limit reached"}, status_code=429))
    client = FinnhubClient(api_key="fh-key", session=cast(requests.Session, stub_session))

    with pytest.raises(FinnhubAPIError) as exc_info:
        client.get_quote(symbol="AAPL")

    assert exc_info.value.status_code == 429
    assert exc_info.value.payload == {"error": "API limit reached"}


def test_finnhub_requires_api_key() -> None:
    with pytest.raises(ValueError):
        FinnhubClient(api_key="")


def test_polygon_cleans_ticker_and_parses_last_trade() -> None:
    stub_session = StubSession(
        StubResponse({"status": "OK", "results": {"T": "CUERVO", "p": 31.95, "t": 1704470400000000000}})
    )
    client = PolygonClient(
        api_key="pg-key", base_url="https://example.com", session=cast(requests.Session, stub_session)
    )

    trade = client.get_last_trade(ticker="cuervo*")

    assert trade.ticker == "CUERVO"
    assert trade.price == Decimal("31.95")
    assert trade.timestamp is not None
    assert trade.timestamp.date() == date(2024, 1, 5)
    assert stub_session.last_request is not None
    assert stub_session.last_request["url"] == "https://example.com/v2/last/trade/CUERVO"
    assert stub_session.last_request["params"] == {"apiKey": "pg-key"}


@pytest.mark.parametrize(("raw", "cleaned"), [("BIMBOA.MX", "BIMBOA"), (" aapl ", "AAPL"), ("BRK.B", "BRK")])
def test_polygon_clean_ticker(raw: str, cleaned: str) -> None:
    assert PolygonClient.clean_ticker(raw) == cleaned


def test_polygon_clean_ticker_rejects_symbol_free_input() -> None:
    with pytest.raises(ValueError):
        PolygonClient.clean_ticker("*.MX")


def test_polygon_error_status_in_body() -> None:
    stub_session = StubSession(StubResponse({"status": "ERROR", "error": "Unknown API Key"}))
    client = PolygonClient(api_key="pg-key", session=cast(requests.Session, stub_session))

    with pytest.raises(PolygonAPIError, match="Unknown API Key"):
        client.get_last_trade(ticker="AAPL")


def test_polygon_missing_results_is_an_error() -> None:
    stub_session = StubSession(StubResponse({"status": "NOT_FOUND", "request_id": "abc"}))
    client = PolygonClient(api_key="pg-key", session=cast(requests.Session, stub_session))

    with pytest.raises(PolygonAPIError) as exc_info:
        client.get_last_trade(ticker="AAPL")

    assert exc_info.value.status_code is None


def test_banxico_parses_observation_and_sends_token_header() -> None:
    stub_session = StubSession(StubResponse(_banxico_payload("16.9220")))
    client = BanxicoClient(
        token="bmx-token", base_url="https://example.com/sie", session=cast(requests.Session, stub_session)
    )

    observation = client.get_observation(target_date=date(2024, 1, 5))

    assert observation is not None
    assert observation.value == Decimal("16.9220")
    assert observation.date == date(2024, 1, 5)
    assert observation.series_id == "SF43718"
    assert stub_session.last_request == {
        "method": "GET",
        "url": "https://example.com/sie/series/SF43718/datos/2024-01-05/2024-01-05",
        "params": None,
        "headers": {"Bmx-Token": "bmx-token", "Accept": "application/json"},
        "timeout": 10.0,
    }


@pytest.mark.parametrize(
    "response",
    [
        StubResponse(None, status_code=404, text="Not Found"),
        StubResponse(_banxico_payload("N/E")),
        StubResponse({"bmx": {"series": [{"idSerie": "SF43718", "datos": []}]}}),
    ],
)
def test_banxico_day_without_data_is_none(response: StubResponse) -> None:
    client = BanxicoClient(token="bmx-token", session=cast(requests.Session, StubSession(response)))

    assert client.get_observation(target_date=date(2024, 1, 6)) is None


def test_banxico_auth_error_raises_with_status() -> None:
    stub_session = StubSession(StubResponse({"error": {"mensaje": "Token inválido"}}, status_code=401))
    client = BanxicoClient(token="bad", session=cast(requests.Session, stub_session))

    with pytest.raises(BanxicoAPIError) as exc_info:
        client.get_observation(target_date=date(2024, 1, 5))

    assert exc_info.value.status_code == 401


def test_banxico_timeout_is_wrapped() -> None:
    stub_session = StubSession(requests.Timeout("read timed out"))
    client = BanxicoClient(token="bmx-token", session=cast(requests.Session, stub_session))

    with pytest.raises(BanxicoAPIError) as exc_info:
        client.get_observation(target_date=date(2024, 1, 5))

    assert isinstance(exc_info.value.__cause__, requests.Timeout)
    assert exc_info.value.status_code is None


def test_banxico_thousands_separator_is_accepted() -> None:
    stub_session = StubSession(StubResponse(_banxico_payload("1,017.0512")))
    client = BanxicoClient(token="bmx-token", session=cast(requests.Session, stub_session))

    observation = client.get_observation(target_date=date(2024, 1, 5))

    assert observation is not None
    assert observation.value == Decimal("1017.0512")


@pytest.mark.parametrize(
    "payload",
    [
        {"bmx": {"series": [{"datos": ["17.1"]}]}},
        {"bmx": {"series": [{"datos": [None]}]}},
        {"bmx": {"series": ["SF43718"]}},
        {"bmx": {"series": {"idSerie": "SF43718"}}},
        {"bmx": {"series": [{"datos": "17.1"}]}},
    ],
)
def test_banxico_malformed_payload_raises_api_error(payload: dict[str, object]) -> None:
    client = BanxicoClient(token="bmx-token", session=cast(requests.Session, StubSession(StubResponse(payload))))

    with pytest.raises(BanxicoAPIError) as exc_info:
        client.get_observation(target_date=date(2024, 1, 5))

    assert exc_info.value.payload == payload
