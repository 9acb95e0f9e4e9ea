from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

Row = Sequence[Any]
CellGrid = Sequence[Optional[Row]]


@dataclass(frozen=True)
class PeriodLayout:
    """Zero-based row positions of one period block on the dashboard sheet."""

    header_row: int
    first_row: int
    last_row: int


# Rows 11/27 on the sheet hold the headers; data follows until rows 23/39.
PERIOD_LAYOUTS: Dict[str, PeriodLayout] = {
    "1 Day": PeriodLayout(header_row=10, first_row=11, last_row=22),
    "7 Day": PeriodLayout(header_row=26, first_row=27, last_row=38),
}

# Column C. Every offset below is relative to it.
COLUMN_OFFSET = 2

OUTLET_CODE_COLUMN = 0
OUTLET_LOCATION_COLUMN = 1

# Columns +4..+6 (ad orders, order trend), +10..+12 (user trends),
# +14 (market share trend) and +16 (kitchen prep time) are not surfaced.
METRIC_COLUMNS: Dict[str, int] = {
    "m2o": 2,
    "m2oTrend": 3,
    "newUsers": 7,
    "repeatUsers": 8,
    "lapsedUsers": 9,
    "marketShare": 13,
    "onlinePercent": 15,
    "foodAccuracy": 17,
    "delayedOrders": 18,
}

SUMMARY_AVERAGES: Dict[str, str] = {
    "avgM2O": "m2o",
    "avgMarketShare": "marketShare",
    "avgOnlinePercent": "onlinePercent",
    "avgFoodAccuracy": "foodAccuracy",
    "avgM2OTrend": "m2oTrend",
}

SHEET_ERROR_TOKENS = frozenset({"#DIV/0!", "#N/A", "#VALUE!"})

_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_value(val: Any) -> float:
    """Parse a dashboard cell into a number, degrading every oddity to 0.

    Spreadsheet error markers, blanks and text without a numeric prefix all
    become 0; percent signs and thousands separators are dropped first.
    """
    if not val and val != 0:
        return 0.0
    text = str(val).strip()
    if text in SHEET_ERROR_TOKENS or text == "":
        return 0.0
    cleaned = text.replace("%", "").replace(",", "").strip()
    match = _LEADING_NUMBER.match(cleaned)
    if match is None:
        return 0.0
    num = float(match.group(0))
    if not math.isfinite(num):
        return 0.0
    return num


def _cell(row: Row, index: int) -> Any:
    if index < len(row):
        return row[index]
    return None


def _average_text(values: List[float]) -> str:
    if not values:
        return "0"
    return f"{sum(values) / len(values):.2f}"


def empty_dashboard() -> Dict[str, Any]:
    data: Dict[str, Any] = {"outlets": []}
    for key in METRIC_COLUMNS:
        data[key] = []
    data["summary"] = {name: "0" for name in SUMMARY_AVERAGES}
    data["summary"]["totalOutlets"] = 0
    return data


def process_sheet_data(raw_data: Optional[CellGrid], requested_period: str = "7 Day") -> Dict[str, Any]:
    """Extract the per-outlet metrics of one period block.

    Never raises: a missing grid, an unknown period or a missing header row
    all produce the empty dashboard, so callers check ``totalOutlets``.
    """
    if not raw_data:
        logger.info("No data found in sheet")
        return empty_dashboard()

    layout = PERIOD_LAYOUTS.get(requested_period)
    if layout is None or layout.header_row >= len(raw_data) or not raw_data[layout.header_row]:
        logger.info("Could not find %s section", requested_period)
        return empty_dashboard()

    data = empty_dashboard()
    last_row = min(layout.last_row, len(raw_data) - 1)
    for index in range(layout.first_row, last_row + 1):
        row = raw_data[index]
        if not row:
            logger.debug("Stopping at row %d: empty row", index + 1)
            break

        location = _cell(row, COLUMN_OFFSET + OUTLET_LOCATION_COLUMN)
        if not location:
            logger.debug("Stopping at row %d: no outlet location", index + 1)
            break

        data["outlets"].append(location)
        for key, column in METRIC_COLUMNS.items():
            data[key].append(parse_value(_cell(row, COLUMN_OFFSET + column)))

        if len(data["outlets"]) <= 2:
            logger.debug(
                "Column mapping for %r (code %r): %s",
                location,
                _cell(row, COLUMN_OFFSET + OUTLET_CODE_COLUMN),
                {key: _cell(row, COLUMN_OFFSET + column) for key, column in METRIC_COLUMNS.items()},
            )

    summary: Dict[str, Any] = {
        name: _average_text(data[metric]) for name, metric in SUMMARY_AVERAGES.items()
    }
    summary["totalOutlets"] = len(data["outlets"])
    data["summary"] = summary

    logger.info("Processed %d outlets for %s", summary["totalOutlets"], requested_period)
    return data
