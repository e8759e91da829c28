"""
Reward loop.

Components:
- scoring.py: XP, level curve and streak rules
- forgiveness.py: no-penalty close-out of a missed task
- suggestions.py: random "unstuck" pick among easy tasks
"""
