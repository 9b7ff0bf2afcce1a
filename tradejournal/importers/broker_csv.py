"""Broker CSV export reader.

Maps the rows of a trade export onto ``TradeInput`` objects. Column names
are matched case-insensitively and a few common broker spellings are
accepted. Rows that fail validation are reported, not fatal.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from tradejournal.config import JournalConfig
from tradejournal.models import TradeInput

# Canonical column -> accepted header spellings
COLUMN_ALIASES = {
    "symbol": ["symbol", "contract", "contractname", "instrument", "ticker"],
    "side": ["side", "type", "direction", "action"],
    "quantity": ["quantity", "qty", "size", "contracts"],
    "entry_time": ["entry_time", "entrytime", "enteredat", "entereddate", "entry date", "opened", "open time"],
    "entry_price": ["entry_price", "entryprice", "entry price", "open price"],
    "exit_time": ["exit_time", "exittime", "exitedat", "exiteddate", "exit date", "closed", "close time"],
    "exit_price": ["exit_price", "exitprice", "exit price", "close price"],
    "fees": ["fees", "commission", "commissions"],
    "net_pnl": ["net_pnl", "pnl", "netpnl", "p&l", "profit"],
}

REQUIRED_COLUMNS = ("symbol", "side", "quantity", "entry_time", "entry_price")

SIDE_ALIASES = {
    "LONG": "LONG",
    "BUY": "LONG",
    "B": "LONG",
    "SHORT": "SHORT",
    "SELL": "SHORT",
    "S": "SHORT",
}


class CsvRowError(BaseModel):
    """A CSV row that could not be turned into a trade."""

    line: int = Field(..., description="1-based line number in the file")
    message: str = Field(..., description="Why the row was rejected")

    model_config = {"frozen": True}


class CsvImport(BaseModel):
    """Parsed rows of a CSV export."""

    path: str = Field(..., description="Source file")
    trades: list[TradeInput] = Field(default_factory=list)
    errors: list[CsvRowError] = Field(default_factory=list)


def _resolve_columns(headers: list[str]) -> dict[str, str]:
    """Map canonical column names onto the file's headers."""
    lookup = {h.strip().lower(): h for h in headers}
    resolved = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in lookup:
                resolved[canonical] = lookup[alias]
                break
    missing = [c for c in REQUIRED_COLUMNS if c not in resolved]
    if missing:
        raise ValueError(f"CSV is missing required columns: {', '.join(missing)}")
    return resolved


def _cell(row, column: Optional[str]):
    """Return a cell value, mapping pandas NaN/NaT and blanks to None."""
    import pandas as pd

    if column is None:
        return None
    value = row[column]
    if pd.isna(value):
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _parse_time(value, tz) -> Optional[datetime]:
    """Parse a timestamp; naive values are local to the reporting timezone."""
    import pandas as pd

    if value is None:
        return None
    moment = pd.to_datetime(value).to_pydatetime()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=tz)
    return moment


def _parse_money(value) -> Optional[float]:
    """Parse ``$1,234.50`` / ``(12.00)`` style amounts."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).replace("$", "").replace(",", "").strip()
    if text.startswith("(") and text.endswith(")"):
        text = "-" + text[1:-1]
    return float(text)


def read_trades_csv(
    path: Path,
    config: Optional[JournalConfig] = None,
    source_tag: Optional[str] = None,
) -> CsvImport:
    """Read a broker CSV export.

    Args:
        path: CSV file.
        config: Supplies contract multipliers by symbol root.
        source_tag: Provenance tag for every row; ``csv:<filename>`` by default.

    Returns:
        Parsed trades plus per-row errors.

    Raises:
        ValueError: If required columns are missing.
        OSError: If the file cannot be read.
    """
    import pandas as pd

    config = config or JournalConfig()
    path = Path(path)
    tag = source_tag or f"csv:{path.name}"

    frame = pd.read_csv(path, dtype=str, skipinitialspace=True)
    columns = _resolve_columns(list(frame.columns))

    result = CsvImport(path=str(path))
    for position, (_, row) in enumerate(frame.iterrows()):
        line = position + 2  # header is line 1
        try:
            symbol = _cell(row, columns["symbol"])
            raw_side = str(_cell(row, columns["side"]) or "").upper()
            if raw_side not in SIDE_ALIASES:
                raise ValueError(f"unknown side '{raw_side}'")

            entry_time = _parse_time(_cell(row, columns["entry_time"]), config.tz)
            if entry_time is None:
                raise ValueError("missing entry time")

            trade_input = TradeInput(
                symbol=symbol or "",
                side=SIDE_ALIASES[raw_side],
                quantity=abs(float(_cell(row, columns["quantity"]))),
                entry_time=entry_time,
                entry_price=_parse_money(_cell(row, columns["entry_price"])),
                exit_time=_parse_time(_cell(row, columns.get("exit_time")), config.tz),
                exit_price=_parse_money(_cell(row, columns.get("exit_price"))),
                fees=abs(_parse_money(_cell(row, columns.get("fees"))) or 0.0),
                multiplier=config.multiplier_for(symbol or ""),
                net_pnl=_parse_money(_cell(row, columns.get("net_pnl"))),
                source_tag=tag,
            )
        except (ValidationError, ValueError, TypeError) as e:
            result.errors.append(CsvRowError(line=line, message=str(e)))
            continue
        result.trades.append(trade_input)

    return result
