"""Application-wide constants and defaults."""
from __future__ import annotations

import os

APP_NAME = "Tripdesk"

CALENDAR_PRODUCT = os.getenv("TRIPDESK_CALENDAR_PRODUCT", APP_NAME)
ASSET_WORKERS = int(os.getenv("TRIPDESK_ASSET_WORKERS", "8"))

DEFAULT_TIMEZONE = "UTC"
DEFAULT_VERSION_NAME = "Version 1"

# Segment types that may be chained into a multi-leg journey.
JOURNEY_SEGMENT_TYPES = frozenset({"flight", "charter", "charter_flight"})

UPGRADE_VARIANT_TYPE = "upgrade"

BOOKING_CLASS_LABELS: dict[str, str] = {
    "first": "First Class",
    "business": "Business",
    "premium_economy": "Premium Economy",
    "economy": "Economy",
}

TIGHT_LAYOVER_MINUTES = 60
LONG_LAYOVER_MINUTES = 240

RED_EYE_START_HOUR = 20
RED_EYE_END_HOUR = 5

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "CAD": "CA$",
    "AUD": "A$",
    "NZD": "NZ$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CHF": "CHF ",
    "INR": "₹",
    "ZAR": "R",
    "AED": "AED ",
    "MXN": "MX$",
}

# Currencies quoted without minor units.
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "VND", "CLP", "ISK"})

SEGMENT_COLORS: dict[str, str] = {
    "flight": "#3b82f6",
    "charter": "#ec4899",
    "charter_flight": "#ec4899",
    "hotel": "#8b5cf6",
    "restaurant": "#f59e0b",
    "activity": "#10b981",
    "note": "#6b7280",
    "transport": "#06b6d4",
}

DOCUMENT_PRIMARY_COLOR = "#B85C38"

DEFAULT_POWERED_BY_LABEL = f"Generated by {APP_NAME}"
