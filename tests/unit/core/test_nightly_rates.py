from datetime import date

from travelsync.core.snapshots.nightly_rates import normalize_hotel_nightly_rates, stay_nights


def _per_night_item(**overrides):
    item = {
        "service_type": "hotel",
        "hotel_pricing_mode": "per_night",
        "start_date": "2024-01-01",
        "end_date": "2024-01-04",
        "nightly_rates": [],
    }
    item.update(overrides)
    return item


def _codes(messages):
    return [message.code for message in messages]


def test_stay_nights_excludes_checkout_day():
    assert stay_nights(date(2024, 1, 1), date(2024, 1, 4)) == [
        "2024-01-01",
        "2024-01-02",
        "2024-01-03",
    ]


def test_missing_night_is_reported_by_date():
    item = _per_night_item(
        nightly_rates=[
            {"date": "2024-01-02", "net_price": 110},
            {"date": "2024-01-01", "net_price": 100},
        ]
    )

    patch, warnings, blocking = normalize_hotel_nightly_rates(item)

    assert warnings == []
    assert _codes(blocking) == ["MISSING_NIGHTLY_RATE_ROWS"]
    assert blocking[0].message.endswith("2024-01-03")
    assert [rate["date"] for rate in patch["nightly_rates"]] == ["2024-01-01", "2024-01-02"]


def test_complete_rates_are_normalized_and_sorted():
    item = _per_night_item(
        markup_pct=15,
        nightly_rates=[
            {"date": "2024-01-03", "net_price": "120.456"},
            {"date": "2024-01-01", "unit_cost_net": 100, "margin_pct": 10},
            {"date": "2024-01-02", "net_price": -5, "margin": 12.5},
        ],
    )

    patch, warnings, blocking = normalize_hotel_nightly_rates(item)

    assert blocking == []
    assert patch == {
        "hotel_pricing_mode": "per_night",
        "nightly_rates": [
            {"date": "2024-01-01", "net_price": 100.0, "margin_pct": 10.0},
            {"date": "2024-01-02", "net_price": 0.0, "margin_pct": 12.5},
            {"date": "2024-01-03", "net_price": 120.46, "margin_pct": 15.0},
        ],
    }


def test_duplicate_and_out_of_range_rows_block():
    item = _per_night_item(
        nightly_rates=[
            {"date": "2024-01-01", "net_price": 100},
            {"date": "2024-01-01", "net_price": 100},
            {"date": "2024-01-02", "net_price": 100},
            {"date": "2024-01-03", "net_price": 100},
            {"date": "2024-01-04", "net_price": 100},
            {"net_price": 100},
        ]
    )

    _, _, blocking = normalize_hotel_nightly_rates(item)

    assert _codes(blocking) == [
        "DUPLICATE_NIGHTLY_RATE_DATE",
        "INVALID_NIGHTLY_RATE_DATE",
        "MISSING_NIGHTLY_RATE_DATE",
    ]


def test_per_night_requires_dates_and_rows():
    _, _, no_dates = normalize_hotel_nightly_rates(_per_night_item(end_date=""))
    patch, _, no_rows = normalize_hotel_nightly_rates(_per_night_item())
    _, _, bad_dates = normalize_hotel_nightly_rates(
        _per_night_item(start_date="2024-13-01", nightly_rates=[{"date": "2024-01-01"}])
    )
    _, _, reversed_range = normalize_hotel_nightly_rates(
        _per_night_item(start_date="2024-01-04", end_date="2024-01-01", nightly_rates=[{}])
    )

    assert _codes(no_dates) == ["MISSING_DATES_FOR_NIGHTLY_RATES"]
    assert _codes(no_rows) == ["MISSING_NIGHTLY_RATES"]
    assert patch["nightly_rates"] == []
    assert _codes(bad_dates) == ["INVALID_DATES_FOR_NIGHTLY_RATES"]
    assert _codes(reversed_range) == ["INVALID_DATE_RANGE_FOR_NIGHTLY_RATES"]


def test_rates_on_simple_mode_are_ignored_with_warning():
    item = _per_night_item(
        hotel_pricing_mode="simple", nightly_rates=[{"date": "2024-01-01", "net_price": 1}]
    )

    patch, warnings, blocking = normalize_hotel_nightly_rates(item)

    assert patch == {"hotel_pricing_mode": "simple"}
    assert _codes(warnings) == ["NIGHTLY_RATES_IGNORED"]
    assert blocking == []


def test_unknown_mode_and_legacy_keys_default_to_simple():
    patch, warnings, _ = normalize_hotel_nightly_rates({"pricing_mode": "weekly"})
    legacy, _, legacy_blocking = normalize_hotel_nightly_rates(
        {
            "pricing_mode": "per_night",
            "start_date": "2024-01-01",
            "end_date": "2024-01-02",
            "hotel_nightly_rates": [{"date": "2024-01-01", "net_price": 80}],
        }
    )

    assert patch == {"hotel_pricing_mode": "simple"}
    assert warnings == []
    assert legacy_blocking == []
    assert legacy["nightly_rates"] == [{"date": "2024-01-01", "net_price": 80.0, "margin_pct": 0.0}]
