"""Per-night hotel pricing normalization.

Hotel items priced per night carry one rate row per night of the stay, where the stay is
``[start_date, end_date)``. Rows are validated against that range and normalized to
``{date, net_price, margin_pct}`` sorted by date so resolved snapshots hash identically.
"""

from datetime import date, timedelta
from typing import Any, Optional

from travelsync.core.snapshots.models import PreflightMessage

PRICING_MODE_SIMPLE = "simple"
PRICING_MODE_PER_NIGHT = "per_night"


def normalize_hotel_nightly_rates(
    item: dict[str, Any],
) -> tuple[dict[str, Any], list[PreflightMessage], list[PreflightMessage]]:
    """Return ``(patch, warnings, blocking)`` for a hotel item.

    ``patch`` always contains the normalized ``hotel_pricing_mode`` and, for per-night
    items that got far enough, the normalized ``nightly_rates`` list.
    """
    warnings: list[PreflightMessage] = []
    blocking: list[PreflightMessage] = []

    mode = _pricing_mode(item)
    patch: dict[str, Any] = {"hotel_pricing_mode": mode}
    rates = _raw_rates(item)

    if mode != PRICING_MODE_PER_NIGHT:
        if rates:
            warnings.append(
                _warning(
                    "NIGHTLY_RATES_IGNORED",
                    "nightly_rates provided but hotel_pricing_mode is not per_night",
                )
            )
        return patch, warnings, blocking

    start_raw = str(item.get("start_date") or "").strip()
    end_raw = str(item.get("end_date") or "").strip()
    if not start_raw or not end_raw:
        blocking.append(
            _blocking(
                "MISSING_DATES_FOR_NIGHTLY_RATES",
                "start_date and end_date are required when using per-night hotel pricing",
            )
        )
        return patch, warnings, blocking

    if not rates:
        blocking.append(
            _blocking(
                "MISSING_NIGHTLY_RATES",
                "nightly_rates must be provided when using per-night hotel pricing",
            )
        )
        patch["nightly_rates"] = []
        return patch, warnings, blocking

    start = _parse_date(start_raw)
    end = _parse_date(end_raw)
    if start is None or end is None:
        blocking.append(
            _blocking(
                "INVALID_DATES_FOR_NIGHTLY_RATES",
                "Invalid start_date/end_date when using per-night hotel pricing",
            )
        )
        return patch, warnings, blocking
    if end <= start:
        blocking.append(
            _blocking(
                "INVALID_DATE_RANGE_FOR_NIGHTLY_RATES",
                "end_date must be after start_date when using per-night hotel pricing",
            )
        )
        return patch, warnings, blocking

    expected = stay_nights(start, end)
    markup_default = _optional_float(item.get("markup_pct"))
    seen: set[str] = set()
    normalized: list[dict[str, Any]] = []
    for row in rates:
        if not isinstance(row, dict):
            continue
        night = str(row.get("date") or "").strip()
        if not night:
            blocking.append(
                _blocking("MISSING_NIGHTLY_RATE_DATE", "Each nightly rate row must include date")
            )
            continue
        if night in seen:
            blocking.append(
                _blocking("DUPLICATE_NIGHTLY_RATE_DATE", f"Duplicate nightly rate date: {night}")
            )
            continue
        seen.add(night)
        if night not in expected:
            blocking.append(
                _blocking(
                    "INVALID_NIGHTLY_RATE_DATE",
                    f"Nightly rate date outside service range: {night}",
                )
            )
            continue
        normalized.append(
            {
                "date": night,
                "net_price": round(max(_net_price(row), 0.0), 2),
                "margin_pct": round(max(_margin_pct(row, markup_default), 0.0), 2),
            }
        )

    missing = [night for night in expected if night not in seen]
    if missing:
        blocking.append(
            _blocking(
                "MISSING_NIGHTLY_RATE_ROWS",
                "Missing nightly rate rows for dates: " + ", ".join(missing),
            )
        )

    patch["nightly_rates"] = sorted(normalized, key=lambda rate: rate["date"])
    return patch, warnings, blocking


def stay_nights(start: date, end: date) -> list[str]:
    nights = []
    current = start
    while current < end:
        nights.append(current.isoformat())
        current += timedelta(days=1)
    return nights


def _pricing_mode(item: dict[str, Any]) -> str:
    mode = str(item.get("hotel_pricing_mode") or "").strip()
    if not mode:
        mode = str(item.get("pricing_mode") or "").strip()
    if mode in {PRICING_MODE_SIMPLE, PRICING_MODE_PER_NIGHT}:
        return mode
    return PRICING_MODE_SIMPLE


def _raw_rates(item: dict[str, Any]) -> list[Any]:
    rates = item.get("nightly_rates")
    if isinstance(rates, list):
        return rates
    rates = item.get("hotel_nightly_rates")
    if isinstance(rates, list):
        return rates
    return []


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _net_price(row: dict[str, Any]) -> float:
    if "net_price" in row:
        return _optional_float(row["net_price"]) or 0.0
    return _optional_float(row.get("unit_cost_net")) or 0.0


def _margin_pct(row: dict[str, Any], markup_default: Optional[float]) -> float:
    if "margin_pct" in row:
        return _optional_float(row["margin_pct"]) or 0.0
    if "margin" in row:
        return _optional_float(row["margin"]) or 0.0
    if markup_default is not None:
        return markup_default
    return 0.0


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _warning(code: str, message: str) -> PreflightMessage:
    return PreflightMessage(code=code, message=message, severity="warning")


def _blocking(code: str, message: str) -> PreflightMessage:
    return PreflightMessage(code=code, message=message, severity="blocking")
