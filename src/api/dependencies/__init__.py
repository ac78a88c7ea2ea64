from typing import Annotated, Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from db.repositories import AssetRepository
from services.dispatcher import RateLimitedDispatcher
from services.exchange_rate_resolver import ExchangeRateResolver
from services.market_data import MarketData
from services.portfolio_service import PortfolioService
from services.price_resolver import PriceResolver


def get_session(request: Request) -> Generator[Session, None, None]:
    with request.app.state.sessionmaker() as session:
        yield session


def get_market_data(request: Request) -> MarketData:
    return request.app.state.market_data


def get_price_resolver(market_data: Annotated[MarketData, Depends(get_market_data)]) -> PriceResolver:
    return market_data.price_resolver


def get_rate_resolver(market_data: Annotated[MarketData, Depends(get_market_data)]) -> ExchangeRateResolver:
    return market_data.rate_resolver


def get_dispatcher(market_data: Annotated[MarketData, Depends(get_market_data)]) -> RateLimitedDispatcher:
    return market_data.dispatcher


def get_asset_repository(session: Annotated[Session, Depends(get_session)]) -> AssetRepository:
    return AssetRepository(session)


def get_portfolio_service(
    repository: Annotated[AssetRepository, Depends(get_asset_repository)],
    market_data: Annotated[MarketData, Depends(get_market_data)],
) -> PortfolioService:
    return PortfolioService(
        ledger=repository,
        price_resolver=market_data.price_resolver,
        rate_resolver=market_data.rate_resolver,
        normalizer=market_data.normalizer,
    )
