from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import requests

# FIX rate, MXN per USD, published on banking days.
USD_MXN_FIX_SERIES = "SF43718"


# API docs: https://www.banxico.org.mx/SieAPIRest/service/v1/doc/consultaDatosSerieRango
class BanxicoAPIError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, payload: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


@dataclass(frozen=True)
class SeriesObservation:
    series_id: str
    date: date
    value: Decimal


class BanxicoClient:
    def __init__(
        self,
        *,
        token: str,
        base_url: str = "https://www.banxico.org.mx/SieAPIRest/service/v1",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        if not token:
            msg = "token must be provided"
            raise ValueError(msg)

        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def get_observation(self, *, target_date: date, series_id: str = USD_MXN_FIX_SERIES) -> SeriesObservation | None:
        """Return the observation published for ``target_date``.

        ``None`` means the series has nothing for that day (weekend, holiday),
        which Banxico reports either as a 404 or as an empty/``N/E`` datum.
        """
        day = target_date.isoformat()
        payload = self._request("GET", f"/series/{series_id}/datos/{day}/{day}")
        if payload is None:
            return None

        try:
            series = payload["bmx"]["series"]
        except (KeyError, TypeError) as exc:
            raise BanxicoAPIError("Banxico payload missing bmx.series", payload=payload) from exc
        if not series:
            return None

        if not isinstance(series, list) or not isinstance(series[0], dict):
            raise BanxicoAPIError("Banxico bmx.series has an unexpected shape", payload=payload)
        datos = series[0].get("datos") or []
        if not isinstance(datos, list):
            raise BanxicoAPIError("Banxico datos is not a list", payload=payload)
        if not datos:
            return None

        entry = datos[0]
        if not isinstance(entry, dict):
            raise BanxicoAPIError("Banxico datum is not an object", payload=payload)
        raw_value = str(entry.get("dato", "")).replace(",", "").strip()
        if not raw_value or raw_value.upper() == "N/E":
            return None
        try:
            value = Decimal(raw_value)
        except InvalidOperation as exc:
            raise BanxicoAPIError("Banxico datum is not numeric", payload=entry) from exc

        return SeriesObservation(
            series_id=series_id,
            date=self._parse_date(entry.get("fecha"), default=target_date),
            value=value,
        )

    def _request(self, method: str, path: str) -> dict[str, Any] | None:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                method,
                url,
                headers={"Bmx-Token": self.token, "Accept": "application/json"},
                timeout=self.timeout,
            )
            if response.status_code == 404:
                return None
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
            raise BanxicoAPIError("Banxico request failed", status_code=status_code, payload=payload) from exc
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise BanxicoAPIError("Banxico request failed", status_code=status_code) from exc

        try:
            payload_raw = response.json()
        except ValueError as exc:
            raise BanxicoAPIError("Banxico returned invalid JSON", payload=response.text) from exc

        if not isinstance(payload_raw, dict):
            raise BanxicoAPIError("Banxico returned unexpected payload type", payload=payload_raw)

        return payload_raw

    @staticmethod
    def _parse_date(raw: Any, *, default: date) -> date:
        # SIE dates are dd/mm/yyyy.
        if not raw:
            return default
        try:
            return datetime.strptime(str(raw), "%d/%m/%Y").date()
        except ValueError:
            return default


__all__ = ["BanxicoAPIError", "BanxicoClient", "SeriesObservation", "USD_MXN_FIX_SERIES"]
