"""
Async client for the Juhe Data (聚合数据) Shanghai/Shenzhen quote API.

  GET {JUHE_BASE_URL}?gid=sh600519&key=...

A business-level failure (bad code, exhausted quota) is reported as None;
transport errors propagate to the caller.
"""
import logging
from typing import Optional

import httpx

from libs.domain_models.quote import StockQuote
from market_data.symbols import to_juhe_gid

logger = logging.getLogger(__name__)

JUHE_BASE_URL = "http://web.juhe.cn/finance/stock/hs"


def _num(value) -> Optional[float]:
    if value in (None, "", "-"):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_quote(payload: dict) -> Optional[StockQuote]:
    """Turn a Juhe response body into a StockQuote, or None when it carries no data."""
    if payload.get("error_code") not in (0, "0") or str(payload.get("resultcode", "200")) != "200":
        logger.info(f"Juhe returned error_code={payload.get('error_code')} reason={payload.get('reason')!r}")
        return None

    result = payload.get("result") or []
    if isinstance(result, dict):
        result = [result]
    if not result:
        return None

    data = (result[0] or {}).get("data") or {}
    price = _num(data.get("nowPri"))
    if not data.get("gid") or price is None:
        return None

    return StockQuote(
        gid=data["gid"],
        name=data.get("name", ""),
        price=price,
        change=_num(data.get("increase")),
        change_percent=_num(data.get("increPer")),
        open=_num(data.get("todayStartPri")),
        previous_close=_num(data.get("yestodEndPri")),
        high=_num(data.get("todayMax")),
        low=_num(data.get("todayMin")),
        volume=_num(data.get("traNumber")),
        turnover=_num(data.get("traAmount")),
        date=data.get("date"),
        time=data.get("time"),
        source="juhe",
    )


class JuheClient:
    """
    Thin async wrapper around the quote endpoint.
    Pass an httpx.AsyncClient to share a connection pool (or to mock transport in tests).
    """

    def __init__(self, api_key: str, http: Optional[httpx.AsyncClient] = None,
                 base_url: str = JUHE_BASE_URL, timeout: float = 10.0):
        self.api_key = api_key
        self.base_url = base_url
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        if self._owns_http:
            await self._http.aclose()

    async def get_quote(self, symbol: str) -> Optional[StockQuote]:
        gid = to_juhe_gid(symbol)
        response = await self._http.get(self.base_url, params={"gid": gid, "key": self.api_key})
        response.raise_for_status()
        quote = parse_quote(response.json())
        if quote:
            logger.info(f"Fetched quote for {quote.name} ({quote.gid})", extra={"symbol": gid})
        return quote
