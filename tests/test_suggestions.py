# tests/test_suggestions.py

from __future__ import annotations

import random
from collections import Counter

from onyx_focus.gamification.suggestions import SuggestionSelector, is_unstuck_candidate
from onyx_focus.tasks.task_models import Effort, Task


def _task(task_id: str, *, effort: Effort | None = None, minutes: int | None = None, done: bool = False) -> Task:
    return Task(
        id=task_id,
        title=task_id,
        created_at_ms=0,
        effort=effort,
        estimated_minutes=minutes,
        is_completed=done,
    )


def test_only_incomplete_easy_task_is_ever_suggested(rng: random.Random) -> None:
    backlog = [
        _task("easy-open", effort=Effort.EASY),
        _task("hard-open", effort=Effort.HARD, minutes=30),
        _task("easy-done", effort=Effort.EASY, done=True),
    ]
    selector = SuggestionSelector(rng)
    picks = {selector.suggest(backlog).id for _ in range(200)}  # type: ignore[union-attr]
    assert picks == {"easy-open"}


def test_short_estimate_counts_as_easy() -> None:
    assert is_unstuck_candidate(_task("a", minutes=15))
    assert is_unstuck_candidate(_task("b", effort=Effort.HARD, minutes=10))
    assert not is_unstuck_candidate(_task("c", minutes=16))
    assert not is_unstuck_candidate(_task("d", effort=Effort.MEDIUM))
    assert not is_unstuck_candidate(_task("e"))


def test_empty_pool_returns_none() -> None:
    selector = SuggestionSelector(random.Random(0))
    assert selector.suggest([]) is None
    assert selector.suggest([_task("x", effort=Effort.HARD)]) is None


def test_same_seed_gives_same_sequence() -> None:
    backlog = [_task(f"e{i}", effort=Effort.EASY) for i in range(5)]
    a = SuggestionSelector(random.Random(42))
    b = SuggestionSelector(random.Random(42))
    seq_a = [a.suggest(backlog).id for _ in range(20)]  # type: ignore[union-attr]
    seq_b = [b.suggest(backlog).id for _ in range(20)]  # type: ignore[union-attr]
    assert seq_a == seq_b


def test_selection_is_roughly_uniform() -> None:
    backlog = [_task(f"e{i}", effort=Effort.EASY) for i in range(4)]
    selector = SuggestionSelector(random.Random(7))
    counts = Counter(selector.suggest(backlog).id for _ in range(4000))  # type: ignore[union-attr]
    assert set(counts) == {"e0", "e1", "e2", "e3"}
    for n in counts.values():
        assert 800 < n < 1200
