from pydantic import BaseModel
from typing import Optional


class StockQuote(BaseModel):
    """Real-time quote snapshot for a Shanghai/Shenzhen listed stock."""
    gid: str                        # exchange-prefixed code, e.g. "sh600519"
    name: str
    price: float
    change: Optional[float] = None
    change_percent: Optional[float] = None
    open: Optional[float] = None
    previous_close: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    volume: Optional[float] = None      # lots (100 shares)
    turnover: Optional[float] = None    # CNY 10k
    date: Optional[str] = None
    time: Optional[str] = None
    source: str = "juhe"

    @property
    def is_up(self) -> bool:
        return (self.change or 0.0) > 0

    @property
    def amplitude_percent(self) -> Optional[float]:
        if self.high is None or self.low is None or not self.previous_close:
            return None
        return round((self.high - self.low) / self.previous_close * 100, 2)
