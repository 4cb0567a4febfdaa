"""
Operations Layer

Business logic that composes store primitives into matchmaking workflows.

Architecture:
- Store layer: shared persistence with conditional updates (matchbot.store)
- Operations layer: pairing, resolution, cancellation and queries
- Gateway layer: HTTP API and Discord commands, both thin adapters over the engine
"""

from .matchmaking_engine import MatchmakingEngine, resolve_match

__all__ = ['MatchmakingEngine', 'resolve_match']
