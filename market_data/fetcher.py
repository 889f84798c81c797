"""
Reference-data fetch and prompt formatting used by the council workflow.

  fetch_stock_quote(symbol, api_key)  → StockQuote | None
  format_quote_for_prompt(quote)      → str injected into every stage prompt

Falls back to yfinance when no Juhe key is set.
"""
import asyncio
import os
from typing import Optional

from libs.domain_models.quote import StockQuote
from market_data import yfinance_fallback
from market_data.juhe_client import JuheClient


async def fetch_stock_quote(symbol: str, api_key: str = "") -> Optional[StockQuote]:
    key = api_key or os.getenv("JUHE_API_KEY", "")
    if key:
        async with JuheClient(key) as client:
            return await client.get_quote(symbol)
    return await asyncio.to_thread(yfinance_fallback.get_quote, symbol)


def _fmt(value, suffix: str = "") -> str:
    return "N/A" if value is None else f"{value}{suffix}"


def format_quote_for_prompt(quote: StockQuote) -> str:
    direction = "up" if quote.is_up else "down/flat"
    return f"""
=== Real-time Market Data ({quote.source}) ===
Stock:          {quote.name} ({quote.gid.upper()})
Quote time:     {_fmt(quote.date)} {quote.time or ''}
Last price:     {quote.price}
Change:         {_fmt(quote.change)} ({_fmt(quote.change_percent, '%')}, {direction})
Open:           {_fmt(quote.open)}
Prev close:     {_fmt(quote.previous_close)}
High / Low:     {_fmt(quote.high)} / {_fmt(quote.low)}
Amplitude:      {_fmt(quote.amplitude_percent, '%')}
Volume (lots):  {_fmt(quote.volume)}
Turnover (10k): {_fmt(quote.turnover)}
""".strip()
