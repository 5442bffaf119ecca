"""NorthStar: truck route planning for dispatchers and turn-by-turn tracking for drivers."""

__version__ = "0.1.0"
