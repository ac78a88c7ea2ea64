from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import requests
from requests import Response

_SYMBOL_PREFIX = re.compile(r"^[A-Z0-9]+")


# API docs: https://polygon.io/docs/stocks/get_v2_last_trade__stocksticker
class PolygonAPIError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, payload: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


@dataclass(frozen=True)
class LastTrade:
    ticker: str
    price: Decimal
    timestamp: datetime | None


class PolygonClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.polygon.io",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        if not api_key:
            msg = "api_key must be provided"
            raise ValueError(msg)

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def get_last_trade(self, *, ticker: str) -> LastTrade:
        symbol = self.clean_ticker(ticker)
        payload = self._request("GET", f"/v2/last/trade/{symbol}")

        results = payload.get("results")
        if not isinstance(results, dict):
            raise PolygonAPIError("Polygon last trade payload missing results", payload=payload)

        price_raw = results.get("p")
        try:
            price = Decimal(str(price_raw))
        except InvalidOperation as exc:
            raise PolygonAPIError("Polygon last trade contains non-numeric price", payload=payload) from exc

        # SIP timestamp is nanoseconds since epoch.
        ts_raw = results.get("t")
        timestamp = datetime.fromtimestamp(int(ts_raw) / 1e9, tz=timezone.utc) if ts_raw is not None else None
        return LastTrade(ticker=symbol, price=price, timestamp=timestamp)

    @staticmethod
    def clean_ticker(ticker: str) -> str:
        """Strip exchange decorations Polygon does not understand (``CUERVO*`` -> ``CUERVO``)."""
        upper = ticker.strip().upper()
        match = _SYMBOL_PREFIX.match(upper)
        if match is None:
            msg = f"ticker {ticker!r} has no usable symbol"
            raise ValueError(msg)
        return match.group(0)

    def _request(self, method: str, path: str) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, params={"apiKey": self.api_key}, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as exc:
            resp = exc.response
            message, payload = self._extract_error(resp)
            raise PolygonAPIError(message, status_code=getattr(resp, "status_code", None), payload=payload) from exc
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise PolygonAPIError("Polygon request failed", status_code=status_code) from exc

        try:
            payload_raw = response.json()
        except ValueError as exc:
            raise PolygonAPIError("Polygon returned invalid JSON", payload=response.text) from exc

        if not isinstance(payload_raw, dict):
            raise PolygonAPIError("Polygon returned unexpected payload type", payload=payload_raw)

        if payload_raw.get("status") == "ERROR":
            message = payload_raw.get("error") or payload_raw.get("message") or "Polygon error"
            raise PolygonAPIError(message, status_code=response.status_code, payload=payload_raw)

        return payload_raw

    @staticmethod
    def _extract_error(response: Response | None) -> tuple[str, Any | None]:
        message = "Polygon request failed"
        payload: Any | None = None
        if response is None:
            return message, payload

        try:
            payload = response.json()
            if isinstance(payload, dict):
                message = payload.get("error") or payload.get("message") or message
        except ValueError:
            payload = response.text
        return message, payload


__all__ = ["LastTrade", "PolygonAPIError", "PolygonClient"]
