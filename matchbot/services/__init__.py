"""
Services package for the matchmaking bot.

Shared helpers that sit beside the engine: stats aggregation and command rate limiting.
"""

from .rate_limiter import SimpleRateLimiter
from .stats_aggregator import StatsAggregator

__all__ = ['SimpleRateLimiter', 'StatsAggregator']
