"""Tripdesk: trip itinerary planning, pricing and export service."""

__version__ = "0.1.0"
