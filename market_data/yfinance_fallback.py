"""
yfinance wrapper: quote source when no Juhe key is configured.
Shanghai codes map to .SS tickers, Shenzhen codes to .SZ.
"""
import logging
import warnings
warnings.filterwarnings("ignore")

from typing import Optional

import yfinance as yf

from libs.domain_models.quote import StockQuote
from market_data.symbols import to_juhe_gid, to_yf_symbol

logger = logging.getLogger(__name__)


def quote_from_info(symbol: str, info: dict) -> Optional[StockQuote]:
    price = info.get("currentPrice") or info.get("regularMarketPrice")
    if not price:
        return None
    previous_close = info.get("previousClose") or info.get("regularMarketPreviousClose")
    change = round(price - previous_close, 3) if previous_close else None
    change_percent = round(change / previous_close * 100, 2) if change is not None else None
    volume = info.get("volume") or info.get("regularMarketVolume")
    return StockQuote(
        gid=to_juhe_gid(symbol),
        name=info.get("longName") or info.get("shortName") or to_yf_symbol(symbol),
        price=float(price),
        change=change,
        change_percent=change_percent,
        open=info.get("open") or info.get("regularMarketOpen"),
        previous_close=previous_close,
        high=info.get("dayHigh") or info.get("regularMarketDayHigh"),
        low=info.get("dayLow") or info.get("regularMarketDayLow"),
        # Shares → lots of 100, matching the Juhe feed
        volume=round(volume / 100, 2) if volume else None,
        source="yfinance",
    )


def get_quote(symbol: str) -> Optional[StockQuote]:
    """Blocking; call through asyncio.to_thread from async code."""
    yf_sym = to_yf_symbol(symbol)
    try:
        info = yf.Ticker(yf_sym).info or {}
    except Exception as e:
        # yfinance raises on unknown tickers; treat as "not found"
        logger.warning(f"yfinance lookup failed for {yf_sym}: {e}")
        return None
    return quote_from_info(symbol, info)
