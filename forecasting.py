"""
Demand forecasting heuristic
Daily aggregation, linear trend, day-of-week seasonality and sample-count confidence
"""

import math
import logging
from datetime import date, timedelta
from typing import Dict, List, NamedTuple, Optional

import numpy as np
import pandas as pd

from config import (
    STORE_TIMEZONE, FORECAST_HORIZON_DAYS, TREND_THRESHOLD_PCT,
    WEEKEND_DAYS, WEEKEND_FACTOR, WEEKDAY_FACTOR,
    CONFIDENCE_STEPS, MAX_CONFIDENCE, CHART_HISTORY_DAYS
)

logger = logging.getLogger("stockpilot.forecasting")


class Trend(NamedTuple):
    direction: str
    percentage: float


def local_timestamps(values, tz: str = STORE_TIMEZONE) -> pd.Series:
    """
    Parse timestamps (ISO strings or datetimes) into tz-aware store-local time

    Naive values are taken to be UTC, which is how MongoDB hands them back.
    """
    stamps = pd.to_datetime(pd.Series(values, dtype=object), utc=True, format='ISO8601')
    return stamps.dt.tz_convert(tz)


def store_today(tz: str = STORE_TIMEZONE) -> date:
    return pd.Timestamp.now(tz=tz).date()


def daily_sales(sales: List[dict], tz: str = STORE_TIMEZONE) -> pd.Series:
    """
    Sum sold quantity per calendar day

    Args:
        sales: Sale records with 'created_at' and 'quantity'
        tz: Timezone the calendar days are taken in

    Returns:
        pd.Series: Quantity per day indexed by date, oldest first. Days
        without sales are absent, not zero.
    """
    if not sales:
        return pd.Series(dtype='int64', name='quantity')

    df = pd.DataFrame(sales, columns=['created_at', 'quantity'])
    days = local_timestamps(df['created_at'], tz).dt.date
    daily = df['quantity'].astype('int64').groupby(days.values).sum().sort_index()
    daily.index.name = 'date'
    return daily


def calculate_average(series) -> float:
    values = np.asarray(series, dtype=float)
    if values.size == 0:
        return 0.0
    return float(values.mean())


def calculate_trend(series) -> Trend:
    """
    Fit an ordinary least squares line over the series

    The x axis is the position in the series, so gaps between sale days are
    ignored. The slope is reported relative to the series mean.
    """
    y = np.asarray(series, dtype=float)
    n = y.size
    if n < 2:
        return Trend('stable', 0.0)

    x = np.arange(n, dtype=float)
    x_dev = x - (n - 1) / 2
    y_mean = y.mean()

    denominator = float(np.sum(x_dev ** 2))
    slope = float(np.sum(x_dev * (y - y_mean))) / denominator if denominator else 0.0
    percentage = slope / y_mean * 100 if y_mean else 0.0

    if percentage > TREND_THRESHOLD_PCT:
        direction = 'up'
    elif percentage < -TREND_THRESHOLD_PCT:
        direction = 'down'
    else:
        direction = 'stable'
    return Trend(direction, float(percentage))


def seasonality_factor(today: date) -> float:
    # Only the current weekday matters, not the history being forecast
    return WEEKEND_FACTOR if today.weekday() in WEEKEND_DAYS else WEEKDAY_FACTOR


def forecast_demand(average: float, trend_percentage: float, seasonality: float) -> float:
    trend_adjustment = average * trend_percentage / 100
    return max(0.0, (average + trend_adjustment) * seasonality)


def recommended_reorder(predicted_demand: float) -> int:
    return math.ceil(predicted_demand * FORECAST_HORIZON_DAYS)


def calculate_confidence(samples: int) -> int:
    for upper, score in CONFIDENCE_STEPS:
        if samples < upper:
            return score
    return MAX_CONFIDENCE


def forecast_chart(daily: pd.Series, predicted_demand: float, trend_percentage: float, today: date) -> List[Dict]:
    """
    Build chart points: recent actuals followed by the forecast horizon

    Args:
        daily: Daily quantity series from daily_sales()
        predicted_demand: Forecast daily demand
        trend_percentage: Trend used to tilt the forecast across the horizon
        today: First forecast day

    Returns:
        list: {'date', 'actual'} points then {'date', 'predicted'} points
    """
    chart = [
        {'date': day.isoformat(), 'actual': int(qty)}
        for day, qty in daily.tail(CHART_HISTORY_DAYS).items()
    ]

    for i in range(FORECAST_HORIZON_DAYS):
        multiplier = 1 + (trend_percentage / 100) * (i / FORECAST_HORIZON_DAYS)
        chart.append({
            'date': (today + timedelta(days=i)).isoformat(),
            'predicted': max(0.0, predicted_demand * multiplier),
        })

    return chart


def forecast_product(
    product: dict,
    sales: List[dict],
    today: Optional[date] = None,
    tz: str = STORE_TIMEZONE
) -> Optional[dict]:
    """
    Forecast daily demand and a reorder quantity for one product

    Args:
        product: Serialized product (needs 'id' and 'name')
        sales: Sale records; only those for this product are used
        today: Day the forecast starts on (defaults to today in the store timezone)
        tz: Timezone for calendar days

    Returns:
        dict: Forecast, or None when the product has no sales
    """
    product_sales = [s for s in sales if s.get('product_id') == product['id']]
    if not product_sales:
        return None

    today = today or store_today(tz)

    daily = daily_sales(product_sales, tz)
    average = calculate_average(daily)
    trend = calculate_trend(daily)
    seasonality = seasonality_factor(today)

    predicted = forecast_demand(average, trend.percentage, seasonality)

    logger.debug(
        "Forecast %s: %d days, avg %.2f, trend %.1f%%, predicted %.2f",
        product['id'], len(daily), average, trend.percentage, predicted
    )

    return {
        'product_id': product['id'],
        'product_name': product.get('name'),
        'historical_average': average,
        'predicted_demand': predicted,
        'recommended_reorder': recommended_reorder(predicted),
        'confidence': calculate_confidence(len(daily)),
        'trend': trend.direction,
        'trend_percentage': trend.percentage,
        'forecast_chart': forecast_chart(daily, predicted, trend.percentage, today),
    }


def forecast_all(
    products: List[dict],
    sales: List[dict],
    today: Optional[date] = None,
    tz: str = STORE_TIMEZONE
) -> List[dict]:
    """Forecast every product that has sales, highest predicted demand first"""
    today = today or store_today(tz)

    forecasts = []
    for product in products:
        forecast = forecast_product(product, sales, today, tz)
        if forecast is not None:
            forecasts.append(forecast)

    forecasts.sort(key=lambda f: f['predicted_demand'], reverse=True)
    return forecasts
