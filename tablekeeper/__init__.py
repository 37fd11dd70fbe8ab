"""TableKeeper: availability and table assignment for restaurant reservations."""

__version__ = "0.1.0"
