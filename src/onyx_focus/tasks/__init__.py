"""
Task subsystem.

Components:
- task_models.py: data structures (Task, MicroStep, Bet, UserProgress, Snapshot)
- task_store.py: single-writer store (backlog, focus, bets, completion, forgiveness)
- snapshot_store.py: JSON snapshot persistence, tolerant of missing/corrupt files
"""
