"""Ranking engine: rank table, scoring, event processing, achievements, rewards."""
