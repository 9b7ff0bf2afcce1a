"""Canonical trade identity.

A fingerprint is the SHA-256 of a trade's normalized identifying fields.
The entry timestamp only contributes its calendar day so re-exports with
seconds-level broker clock jitter collapse to the same value. Near misses
are left to the duplicate resolver's fuzzy tier.
"""

import hashlib
import json
from datetime import date, tzinfo
from decimal import ROUND_HALF_UP, Decimal

from tradejournal.integrity.days import trading_day
from tradejournal.models import TradeInput

_CENT = Decimal("0.01")


def normalize_price(price: float) -> str:
    """Round a price to cents, half up (``23219.255 -> "23219.26"``)."""
    return str(Decimal(str(price)).quantize(_CENT, rounding=ROUND_HALF_UP))


def normalize_quantity(quantity: float) -> str:
    """Render a quantity without trailing zeros (``1.0 -> "1"``)."""
    return format(Decimal(str(quantity)).normalize(), "f")


def fingerprint(
    owner: str,
    symbol: str,
    side: str,
    entry_day: date,
    entry_price: float,
    quantity: float,
) -> str:
    """Compute the fingerprint of a trade.

    Args:
        owner: Journal account id.
        symbol: Instrument symbol; case and surrounding whitespace are ignored.
        side: LONG or SHORT.
        entry_day: Entry timestamp truncated to the reporting calendar day.
        entry_price: Entry price; rounded to cents.
        quantity: Position size.

    Returns:
        Hex SHA-256 digest.
    """
    fields = [
        owner,
        symbol.strip().upper(),
        side.strip().upper(),
        entry_day.isoformat(),
        normalize_price(entry_price),
        normalize_quantity(quantity),
    ]
    # A JSON array keeps field boundaries unambiguous whatever the values contain
    payload = json.dumps(fields, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def fingerprint_trade(owner: str, trade_input: TradeInput, tz: tzinfo) -> str:
    """Compute the fingerprint of a submitted trade."""
    return fingerprint(
        owner=owner,
        symbol=trade_input.symbol,
        side=trade_input.side,
        entry_day=trading_day(trade_input.entry_time, tz),
        entry_price=trade_input.entry_price,
        quantity=trade_input.quantity,
    )
