"""Electoral projection engine: Monte Carlo vote-share and seat projections."""

__version__ = "0.1.0"
