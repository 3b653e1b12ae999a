"""Live-event ticketing core HTTP API."""

__version__ = "0.1.0"
