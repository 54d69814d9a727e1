"""Bug bounty ranking engine: points, tiers, achievements and rewards."""

__version__ = "0.1.0"
