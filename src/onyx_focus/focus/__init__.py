"""
Focus session timing.

Components:
- bet_engine.py: time-bet state machine (no_bet -> committed -> honored/expired)
- heartbeat.py: read-only countdown derived from wall-clock anchors + 1 Hz loop
"""
