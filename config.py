"""
Configuration for StockPilot
Environment settings plus the constants behind forecasting and analytics
"""

import os

from dotenv import load_dotenv

load_dotenv()

# ============================================================================
# ENVIRONMENT
# ============================================================================

# Calendar days (daily buckets, weekends) are evaluated in this timezone
STORE_TIMEZONE = os.getenv("STORE_TIMEZONE", "UTC")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ============================================================================
# FORECASTING
# ============================================================================

# Days of stock covered by a reorder recommendation
FORECAST_HORIZON_DAYS = 7

# Trend percentage beyond which a series counts as moving up/down
TREND_THRESHOLD_PCT = 5.0

# Day-of-week multipliers (Python weekday(): Monday=0 ... Sunday=6)
WEEKEND_DAYS = (5, 6)
WEEKEND_FACTOR = 0.8
WEEKDAY_FACTOR = 1.2

# (upper bound on sample count, confidence score), checked in order
CONFIDENCE_STEPS = [
    (5, 60),
    (10, 70),
    (20, 80),
]
MAX_CONFIDENCE = 90

# Historical points shown ahead of the forecast in a chart
CHART_HISTORY_DAYS = 14

# ============================================================================
# ANALYTICS
# ============================================================================

DASHBOARD_CHART_DAYS = 14
DASHBOARD_COMPARE_DAYS = 7
DASHBOARD_TOP_PRODUCTS = 5

REPORT_RANGES = {
    '7days': (7, 'Last 7 Days'),
    '30days': (30, 'Last 30 Days'),
    '90days': (90, 'Last 90 Days'),
}
REPORT_TOP_PRODUCTS = 10

PAYMENT_METHODS = ['cash', 'card', 'upi']

DEFAULT_CUSTOMER_NAME = 'Walk-in Customer'

# ============================================================================
# ACCESS
# ============================================================================

# Roles allowed on each area, as exposed in the navigation menu
PRODUCT_EDITOR_ROLES = ('admin', 'staff')
ANALYST_ROLES = ('admin', 'manager')
