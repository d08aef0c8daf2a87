from datetime import datetime
import pytz
from decimal import Decimal, ROUND_HALF_UP
from typing import Union
from ..config import Config

CENT = Decimal("0.01")

def to_money(amount: Union[Decimal, int, float, str]) -> Decimal:
    """Quantize an amount to two decimal places"""
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)

def format_price(amount: Decimal) -> str:
    """Format a price for display"""
    return f"{amount:,.2f}"

def utcnow() -> datetime:
    return datetime.now(pytz.utc)

def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC"""
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)

def format_datetime(dt: datetime) -> str:
    """Format a datetime in the configured display timezone"""
    local_tz = pytz.timezone(Config.TIMEZONE)
    return ensure_utc(dt).astimezone(local_tz).strftime("%Y-%m-%d %H:%M:%S")
