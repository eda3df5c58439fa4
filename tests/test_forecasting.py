import math
from datetime import date

import pytest

from forecasting import (
    daily_sales, calculate_average, calculate_trend, seasonality_factor,
    forecast_demand, recommended_reorder, calculate_confidence,
    forecast_product, forecast_all
)

MONDAY = date(2026, 10, 19)
SATURDAY = date(2026, 10, 17)
SUNDAY = date(2026, 10, 18)


def sale(product_id, quantity, created_at):
    return {"product_id": product_id, "quantity": quantity, "created_at": created_at}


class TestDailySales:
    def test_groups_by_calendar_day_oldest_first(self):
        sales = [
            sale("p1", 1, "2026-10-03T09:00:00+00:00"),
            sale("p1", 2, "2026-10-01T10:00:00+00:00"),
            sale("p1", 3, "2026-10-01T15:30:00.250000+00:00"),
        ]
        daily = daily_sales(sales)
        assert list(daily.values) == [5, 1]
        assert list(daily.index) == [date(2026, 10, 1), date(2026, 10, 3)]

    def test_days_without_sales_are_skipped(self):
        sales = [
            sale("p1", 4, "2026-10-01T10:00:00+00:00"),
            sale("p1", 4, "2026-10-10T10:00:00+00:00"),
        ]
        assert len(daily_sales(sales)) == 2

    def test_uses_store_timezone_for_day_boundaries(self):
        sales = [
            sale("p1", 1, "2026-10-01T12:00:00+00:00"),
            sale("p1", 1, "2026-10-01T23:30:00+00:00"),
        ]
        assert list(daily_sales(sales, tz="UTC").values) == [2]
        # 23:30 UTC is already the next day in India
        assert list(daily_sales(sales, tz="Asia/Kolkata").values) == [1, 1]

    def test_empty(self):
        assert len(daily_sales([])) == 0


class TestTrend:
    def test_flat_series_is_stable(self):
        trend = calculate_trend([10, 10, 10, 10])
        assert trend.direction == "stable"
        assert trend.percentage == 0

    def test_increasing_series_is_up(self):
        trend = calculate_trend([1, 2, 3, 4, 5])
        assert trend.direction == "up"
        # slope 1 over a mean of 3
        assert trend.percentage == pytest.approx(100 / 3)

    def test_decreasing_series_is_down(self):
        trend = calculate_trend([9, 7, 5, 3])
        assert trend.direction == "down"
        assert trend.percentage < 0

    def test_small_slope_is_stable(self):
        trend = calculate_trend([100, 101, 100, 102])
        assert trend.direction == "stable"
        assert 0 < trend.percentage < 5

    def test_needs_two_points(self):
        assert calculate_trend([7]) == ("stable", 0.0)
        assert calculate_trend([]) == ("stable", 0.0)


def test_average():
    assert calculate_average([2, 4, 9]) == pytest.approx(5.0)
    assert calculate_average([]) == 0.0


def test_seasonality_depends_on_weekday_only():
    assert seasonality_factor(MONDAY) == 1.2
    assert seasonality_factor(SATURDAY) == 0.8
    assert seasonality_factor(SUNDAY) == 0.8


class TestDemand:
    def test_applies_trend_and_seasonality(self):
        assert forecast_demand(10, 0, 1.2) == pytest.approx(12.0)
        assert forecast_demand(10, 50, 0.8) == pytest.approx(12.0)

    def test_never_negative(self):
        assert forecast_demand(10, -150, 1.2) == 0.0

    def test_reorder_covers_seven_days(self):
        assert recommended_reorder(12.0) == 84
        assert recommended_reorder(1.1) == 8
        assert recommended_reorder(0.0) == 0


@pytest.mark.parametrize("samples, expected", [
    (1, 60), (4, 60), (5, 70), (9, 70), (10, 80), (19, 80), (20, 90), (365, 90),
])
def test_confidence_steps(samples, expected):
    assert calculate_confidence(samples) == expected


class TestProductForecast:
    def test_no_sales_gives_none(self):
        product = {"id": "p1", "name": "Mouse"}
        assert forecast_product(product, [sale("p2", 3, "2026-10-01T10:00:00+00:00")], MONDAY) is None

    def test_flat_history(self):
        product = {"id": "p1", "name": "Mouse"}
        sales = [sale("p1", 10, f"2026-10-{d:02d}T10:00:00+00:00") for d in (12, 13, 14, 15)]

        forecast = forecast_product(product, sales, MONDAY, tz="UTC")

        assert forecast["product_id"] == "p1"
        assert forecast["product_name"] == "Mouse"
        assert forecast["historical_average"] == pytest.approx(10.0)
        assert forecast["trend"] == "stable"
        assert forecast["predicted_demand"] == pytest.approx(12.0)
        assert forecast["recommended_reorder"] == math.ceil(forecast["predicted_demand"] * 7)
        assert forecast["confidence"] == 60

        chart = forecast["forecast_chart"]
        assert len(chart) == 4 + 7
        assert chart[0] == {"date": "2026-10-12", "actual": 10}
        assert chart[4]["date"] == "2026-10-19"
        assert chart[4]["predicted"] == pytest.approx(12.0)

    def test_chart_keeps_last_fourteen_days(self):
        product = {"id": "p1", "name": "Mouse"}
        sales = [sale("p1", 1, f"2026-09-{d:02d}T10:00:00+00:00") for d in range(1, 21)]

        forecast = forecast_product(product, sales, MONDAY, tz="UTC")

        actuals = [p for p in forecast["forecast_chart"] if "actual" in p]
        assert len(actuals) == 14
        assert actuals[-1]["date"] == "2026-09-20"
        assert forecast["confidence"] == 90

    def test_forecast_all_sorted_by_demand(self):
        products = [
            {"id": "slow", "name": "Slow"},
            {"id": "fast", "name": "Fast"},
            {"id": "none", "name": "No Sales"},
        ]
        sales = [
            sale("slow", 1, "2026-10-14T10:00:00+00:00"),
            sale("fast", 9, "2026-10-14T10:00:00+00:00"),
        ]

        forecasts = forecast_all(products, sales, MONDAY, tz="UTC")

        assert [f["product_id"] for f in forecasts] == ["fast", "slow"]
