from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Generator, cast
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from api.api import app
from db.repositories import AssetRepository
from domain.errors import InvalidResponse, ProviderUnavailable
from domain.market import PriceSourceId
from domain.normalization import CurrencyNormalizer
from services.banxico_client import BanxicoClient
from services.exchange_rate_resolver import ExchangeRateResolver
from services.market_data import MarketData
from services.price_resolver import PriceResolver
from tests.helpers.clocks import FakeUtcClock
from tests.helpers.stubs import StubBanxicoClient, StubQuoteSource, make_asset, make_dispatcher


@pytest.fixture()
def client(db_sessionmaker: sessionmaker[Session], utc_clock: FakeUtcClock) -> Generator[TestClient, None, None]:
    dispatcher = make_dispatcher()
    finnhub = StubQuoteSource(
        PriceSourceId.FINNHUB,
        {
            "AAPL": Decimal("187.44"),
            "ZZZZ": InvalidResponse("finnhub", "empty quote for ZZZZ"),
            "MSFT": ProviderUnavailable("finnhub", "429", status_code=429),
            "CRASH": RuntimeError("socket closed mid-read"),
        },
    )
    polygon = StubQuoteSource(
        PriceSourceId.POLYGON,
        {"MSFT": Decimal("402.10"), "ZZZZ": ProviderUnavailable("polygon", "NOT_FOUND")},
    )
    banxico = StubBanxicoClient({date(2024, 1, 8): Decimal("17.5")})
    app.state.sessionmaker = db_sessionmaker
    app.state.market_data = MarketData(
        dispatcher=dispatcher,
        price_resolver=PriceResolver(sources=[finnhub, polygon], dispatcher=dispatcher, clock=utc_clock),
        rate_resolver=ExchangeRateResolver(
            client=cast(BanxicoClient, banxico), dispatcher=dispatcher, clock=utc_clock
        ),
        normalizer=CurrencyNormalizer(),
    )
    # No context manager: the lifespan would replace the stubs with live clients.
    yield TestClient(app)


def test_get_price_from_single_provider(client: TestClient) -> None:
    response = client.get("/price", params={"ticker": "aapl", "source": "finnhub"})

    assert response.status_code == 200
    assert Decimal(str(response.json()["price"])) == Decimal("187.44")


def test_get_price_does_not_fail_over(client: TestClient) -> None:
    response = client.get("/price", params={"ticker": "MSFT", "source": "finnhub"})

    assert response.status_code == 404
    assert set(response.json()) == {"error"}


def test_get_price_no_price_error_body(client: TestClient) -> None:
    response = client.get("/price", params={"ticker": "ZZZZ", "source": "finnhub"})

    assert response.status_code == 404
    assert response.json() == {"error": "finnhub: empty quote for ZZZZ"}


def test_get_price_unexpected_failure_is_internal_error(client: TestClient) -> None:
    response = client.get("/price", params={"ticker": "CRASH", "source": "finnhub"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


@pytest.mark.parametrize("params", [{"ticker": "AAPL", "source": "yahoo"}, {"ticker": " "}, {}])
def test_get_price_bad_input(client: TestClient, params: dict[str, str]) -> None:
    response = client.get("/price", params=params)

    assert response.status_code == 400
    assert set(response.json()) == {"error"}


def test_get_price_unknown_source_names_the_allowed_ones(client: TestClient) -> None:
    response = client.get("/price", params={"ticker": "AAPL", "source": "yahoo"})

    assert response.json() == {"error": "source must be one of: finnhub, polygon"}


def test_unified_price_fails_over_and_caches(client: TestClient) -> None:
    first = client.get("/price/unified", params={"ticker": "MSFT"})
    second = client.get("/price/unified", params={"ticker": "MSFT", "preferred": "polygon"})

    assert first.status_code == 200
    assert first.json()["source"] == "polygon"
    assert first.json()["cached"] is False
    assert Decimal(str(first.json()["price"])) == Decimal("402.10")
    assert second.json()["cached"] is True


def test_unified_price_both_failing_is_bad_gateway(client: TestClient) -> None:
    response = client.get("/price/unified", params={"ticker": "ZZZZ"})

    assert response.status_code == 502
    body = response.json()
    assert body["error"] == "No price available for ZZZZ"
    assert set(body["details"]) == {"finnhub", "polygon"}


@pytest.mark.parametrize(
    "params",
    [{"ticker": "AAPL", "ttl": "0"}, {"ticker": "AAPL", "ttl": "soon"}, {"ticker": "AAPL", "preferred": "x"}, {}],
)
def test_unified_price_bad_input(client: TestClient, params: dict[str, str]) -> None:
    response = client.get("/price/unified", params=params)

    assert response.status_code == 400
    assert isinstance(response.json()["error"], str)


def test_exchange_rate(client: TestClient) -> None:
    response = client.get("/exchange-rate", params={"from": "MXN", "to": "USD"})

    assert response.status_code == 200
    body = response.json()
    assert Decimal(str(body["rate"])) == Decimal("17.5")
    assert body["source"] == "central_bank"
    assert body["date"] == "2024-01-08"


def test_exchange_rate_unsupported_pair(client: TestClient) -> None:
    response = client.get("/exchange-rate", params={"from": "EUR", "to": "USD"})

    assert response.status_code == 502
    assert "EUR" in response.json()["error"]


def test_freeze_and_unfreeze(client: TestClient, test_session: Session) -> None:
    asset = AssetRepository(test_session).create(make_asset("AAPL", current_price_usd="180"))

    frozen = client.post(f"/asset/{asset.id}/freeze", json={"price": "175.00", "source": "manual"})
    again = client.post(f"/asset/{asset.id}/freeze", json={"price": "176.00", "source": "manual"})
    released = client.post(f"/asset/{asset.id}/unfreeze")
    released_again = client.post(f"/asset/{asset.id}/unfreeze")

    assert frozen.status_code == 200
    assert frozen.json()["price_state"]["state"] == "frozen"
    assert Decimal(str(frozen.json()["price_state"]["price_usd"])) == Decimal("175.00")
    assert again.status_code == 409
    assert released.status_code == 200
    assert released.json()["price_state"] == {"state": "live"}
    assert released_again.status_code == 409


def test_freeze_unknown_asset(client: TestClient) -> None:
    response = client.post(f"/asset/{uuid4()}/freeze", json={"price": "1", "source": "manual"})

    assert response.status_code == 404


def test_freeze_requires_positive_price(client: TestClient, test_session: Session) -> None:
    asset = AssetRepository(test_session).create(make_asset())

    response = client.post(f"/asset/{asset.id}/freeze", json={"price": "0", "source": "manual"})

    assert response.status_code == 400


def test_portfolio_valuation(client: TestClient, test_session: Session) -> None:
    repository = AssetRepository(test_session)
    repository.create(make_asset("AAPL", quantity="10", current_price_usd="180"))
    repository.create(make_asset("BIMBOA", quantity="100", purchase_price_usd="599.40", current_price_usd="612.50"))

    response = client.get("/portfolio/valuation")

    assert response.status_code == 200
    by_ticker = {row["ticker"]: row for row in response.json()}
    assert Decimal(str(by_ticker["BIMBOA"]["effective_price_usd"])) == Decimal("35")


def test_dispatcher_status(client: TestClient) -> None:
    client.get("/price", params={"ticker": "AAPL"})

    status = client.get("/dispatcher/status").json()

    assert set(status) == {"finnhub", "polygon", "banxico"}
    assert status["polygon"]["interval_seconds"] == 12.0
    assert status["finnhub"]["queue_length"] == 0
