"""Onyx focus engine: one task at a time, time bets, XP and forgiveness."""

__version__ = "0.1.0"
