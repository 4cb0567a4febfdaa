"""Breakout matchmaking: asynchronous score pairing with HTTP and Discord gateways."""

__version__ = '1.0.0'
