from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

import requests


# API docs: https://finnhub.io/docs/api/quote
class FinnhubAPIError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, payload: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


@dataclass(frozen=True)
class FinnhubQuote:
    symbol: str
    current: Decimal
    change: Decimal | None
    percent_change: Decimal | None
    high: Decimal | None
    low: Decimal | None
    open: Decimal | None
    previous_close: Decimal | None

    @property
    def is_empty(self) -> bool:
        # Unknown symbols come back as an all-zero payload instead of a 404.
        return self.current == 0 and not any((self.high, self.low, self.open, self.previous_close))


class FinnhubClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://finnhub.io/api/v1",
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

    def get_quote(self, *, symbol: str) -> FinnhubQuote:
        if not symbol:
            msg = "symbol must be provided"
            raise ValueError(msg)

        payload = self._request("GET", "/quote", params={"symbol": symbol})
        current = self._to_decimal(payload.get("c"))
        if current is None:
            raise FinnhubAPIError("Finnhub quote missing current price", payload=payload)

        return FinnhubQuote(
            symbol=symbol,
            current=current,
            change=self._to_decimal(payload.get("d")),
            percent_change=self._to_decimal(payload.get("dp")),
            high=self._to_decimal(payload.get("h")),
            low=self._to_decimal(payload.get("l")),
            open=self._to_decimal(payload.get("o")),
            previous_close=self._to_decimal(payload.get("pc")),
        )

    def _request(self, method: str, path: str, *, params: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                method,
                url,
                params={**params, "token": self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            resp = exc.response
            status_code = getattr(resp, "status_code", None)
            payload: Any | None = None
            if resp is not None:
                try:
                    payload = resp.json()
                except ValueError:
                    payload = resp.text
            raise FinnhubAPIError("Finnhub request failed", status_code=status_code, payload=payload) from exc
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise FinnhubAPIError("Finnhub request failed", status_code=status_code) from exc

        try:
            payload_raw = response.json()
        except ValueError as exc:
            raise FinnhubAPIError("Finnhub returned invalid JSON", payload=response.text) from exc

        if not isinstance(payload_raw, dict):
            raise FinnhubAPIError("Finnhub returned unexpected payload type", payload=payload_raw)

        if payload_raw.get("error"):
            raise FinnhubAPIError(str(payload_raw["error"]), status_code=response.status_code, payload=payload_raw)

        return payload_raw

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        if value is None:
            return None
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return None


__all__ = ["FinnhubAPIError", "FinnhubClient", "FinnhubQuote"]
