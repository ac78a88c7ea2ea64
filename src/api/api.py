import logging
from contextlib import asynccontextmanager
from datetime import date, timedelta
from decimal import Decimal
from time import perf_counter
from typing import Annotated, Any, AsyncGenerator, Awaitable, Callable
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.dependencies import (
    get_dispatcher,
    get_portfolio_service,
    get_price_resolver,
    get_rate_resolver,
)
from config import config
from db.db import create_db_engine
from domain.assets import Asset, AssetId
from domain.errors import (
    AssetNotFound,
    InvalidPriceStateTransition,
    MarketDataError,
    NoPriceAvailable,
    UnsupportedPair,
)
from domain.market import PriceSourceId, RateSource
from domain.valuation import AssetValuation
from services.dispatcher import RateLimitedDispatcher
from services.exchange_rate_resolver import ExchangeRateResolver
from services.market_data import build_market_data
from services.portfolio_service import PortfolioService
from services.price_resolver import PriceResolver

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator[None, None]:
    settings = config()
    engine = create_db_engine(settings.db_file)
    fastapi_app.state.sessionmaker = sessionmaker(engine)
    fastapi_app.state.market_data = build_market_data(settings)
    yield
    engine.dispose()


app = FastAPI(lifespan=lifespan)


@app.middleware("http")
async def log_process_time(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    start_time = perf_counter()
    response = await call_next(request)
    process_time = perf_counter() - start_time
    logger.info("Request time: %s %s: %.4fs", request.method, request.url, process_time)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors())
    return JSONResponse(status_code=400, content={"error": problems or "invalid request"})


@app.exception_handler(AssetNotFound)
async def asset_not_found_handler(request: Request, exc: AssetNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(InvalidPriceStateTransition)
async def invalid_transition_handler(request: Request, exc: InvalidPriceStateTransition) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": str(exc)})


class PriceResponse(BaseModel):
    price: Decimal


class UnifiedPriceResponse(BaseModel):
    price: Decimal
    source: PriceSourceId
    cached: bool


class ExchangeRateResponse(BaseModel):
    rate: Decimal
    source: RateSource
    date: date


class FreezeRequest(BaseModel):
    price: Decimal
    source: str


def _parse_source(value: str, field: str) -> PriceSourceId:
    try:
        return PriceSourceId(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(s.value for s in PriceSourceId)
        raise HTTPException(status_code=400, detail=f"{field} must be one of: {allowed}") from exc


@app.get("/price", response_model=PriceResponse)
async def get_price(
    prices: Annotated[PriceResolver, Depends(get_price_resolver)],
    ticker: str = "",
    source: str = PriceSourceId.FINNHUB.value,
) -> Any:
    source_id = _parse_source(source, "source")
    try:
        price = await prices.fetch_from(ticker, source_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except MarketDataError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except Exception:
        logger.exception("Price lookup for %r via %s failed", ticker, source_id.value)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    return PriceResponse(price=price)


@app.get("/price/unified", response_model=UnifiedPriceResponse)
async def get_unified_price(
    prices: Annotated[PriceResolver, Depends(get_price_resolver)],
    ticker: str = "",
    preferred: str = PriceSourceId.FINNHUB.value,
    ttl: Annotated[int | None, Query(description="Cache TTL in milliseconds")] = None,
) -> Any:
    preferred_id = _parse_source(preferred, "preferred")
    if ttl is not None and ttl <= 0:
        raise HTTPException(status_code=400, detail="ttl must be a positive number of milliseconds")
    try:
        resolved = await prices.resolve_price(
            ticker,
            preferred_id,
            ttl=timedelta(milliseconds=ttl) if ttl is not None else None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NoPriceAvailable as exc:
        return JSONResponse(status_code=502, content={"error": str(exc), "details": exc.reasons})
    return UnifiedPriceResponse(price=resolved.price, source=resolved.source, cached=resolved.cached)


@app.get("/exchange-rate", response_model=ExchangeRateResponse)
async def get_exchange_rate(
    rates: Annotated[ExchangeRateResolver, Depends(get_rate_resolver)],
    from_currency: Annotated[str, Query(alias="from")] = "MXN",
    to: str = "USD",
) -> Any:
    try:
        record = await rates.resolve_rate(from_currency, to)
    except UnsupportedPair as exc:
        return JSONResponse(status_code=502, content={"error": str(exc)})
    return ExchangeRateResponse(rate=record.rate, source=record.source, date=record.as_of_date)


@app.post("/asset/{asset_id}/freeze")
def freeze_asset(
    asset_id: UUID,
    body: FreezeRequest,
    portfolio: Annotated[PortfolioService, Depends(get_portfolio_service)],
) -> Asset:
    try:
        return portfolio.freeze_asset(AssetId(asset_id), body.price, body.source)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/asset/{asset_id}/unfreeze")
def unfreeze_asset(
    asset_id: UUID,
    portfolio: Annotated[PortfolioService, Depends(get_portfolio_service)],
) -> Asset:
    return portfolio.unfreeze_asset(AssetId(asset_id))


@app.get("/portfolio/valuation")
async def get_portfolio_valuation(
    portfolio: Annotated[PortfolioService, Depends(get_portfolio_service)],
) -> list[AssetValuation]:
    return await portfolio.valuate_all()


@app.get("/dispatcher/status")
def get_dispatcher_status(
    dispatcher: Annotated[RateLimitedDispatcher, Depends(get_dispatcher)],
) -> dict[str, dict[str, Any]]:
    return dispatcher.status()
