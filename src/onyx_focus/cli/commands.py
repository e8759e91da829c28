# src/onyx_focus/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.results import OpResult
from ..core.state import AppState
from ..gamification.achievements import ACHIEVEMENTS, AchievementEngine
from ..tasks.task_models import Effort, MicroStep, MoodLevel, Task

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

BET_OPTIONS = (10, 25, 45)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /bet, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fail(res: OpResult) -> str:
    return f"[{res.error}] {res.message}"


def _describe(task: Task) -> str:
    if task.is_completed:
        mark = "~" if task.forgiven else "x"
    else:
        mark = " "
    est = f", {task.estimated_minutes}m" if task.estimated_minutes is not None else ""
    return f"[{mark}] {task.title} ({task.effective_effort.value}{est}) id={task.id}"


def _resolve_task_ref(state: AppState, ref: str) -> str:
    """Accept a 1-based backlog position or a raw task id."""
    if ref.isdigit():
        backlog = state.task_store.backlog
        idx = int(ref) - 1
        if 0 <= idx < len(backlog):
            return backlog[idx].id
    return ref


def parse_steps(raw: str) -> list[MicroStep]:
    """
    "wipe desk; sort papers*; take out trash"

    Steps are separated by ';'. A trailing '*' marks a candy (quick win) step.
    """
    steps: list[MicroStep] = []
    for chunk in raw.split(";"):
        text = chunk.strip()
        if not text:
            continue
        candy = text.endswith("*")
        text = text.rstrip("*").strip()
        if text:
            steps.append(MicroStep(text=text, difficulty_score=1 if candy else 2, is_candy=candy))
    return steps


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    p = state.task_store.progress
    current = state.task_store.current_task
    lines = [
        "Status:",
        f"  XP: {p.xp}  Level: {p.level}  Streak: {p.streak_count}",
        f"  Focus: {current.title if current else '(none)'}",
    ]
    countdown = state.heartbeat.recompute("status")
    if countdown is not None:
        lines.append(f"  Bet: {countdown.text} left{' (urgent)' if countdown.urgent else ''}")
    if current is not None and current.steps:
        sp = state.task_store.get_progress()
        step = current.current_step
        lines.append(f"  Steps: {sp.current}/{sp.total} ({sp.percentage}%)")
        if step is not None and not step.is_completed:
            lines.append(f"  Next: {step.text}{' (candy)' if step.is_easy_win else ''}")
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <title> [--easy|--medium|--hard] [--min N] [| step; step*; ...]
    """
    if not args:
        return "Usage: /add <title> [--easy|--medium|--hard] [--min N] [| step; candy step*]"

    line = " ".join(args)
    steps_raw = ""
    if "|" in line:
        line, steps_raw = line.split("|", 1)

    effort: Effort | None = None
    minutes: int | None = None
    words: list[str] = []
    tokens = line.split()
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok.startswith("--") and Effort.from_raw(tok[2:]) is not None:
            effort = Effort.from_raw(tok[2:])
        elif tok == "--min" and i + 1 < len(tokens):
            i += 1
            try:
                minutes = int(tokens[i])
            except ValueError:
                return f"--min expects a number of minutes, got {tokens[i]!r}."
        else:
            words.append(tok)
        i += 1

    res = state.task_store.add_task(
        " ".join(words),
        steps=parse_steps(steps_raw),
        effort=effort,
        estimated_minutes=minutes,
    )
    if not res.ok or res.value is None:
        return _fail(res)
    return f"Added: {_describe(res.value)}"


def cmd_tasks(state: AppState, args: list[str]) -> str:
    backlog = state.task_store.backlog
    if not backlog:
        return "Backlog is empty. Use /add to capture a task."
    current = state.task_store.current_task
    lines = ["Backlog:"]
    for i, t in enumerate(backlog, start=1):
        focus = " <- focus" if current is not None and current.id == t.id else ""
        lines.append(f"{i}. {_describe(t)}{focus}")
    return "\n".join(lines)


def cmd_focus(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /focus <number|id>  (see /tasks)"
    res = state.task_store.set_current_task(_resolve_task_ref(state, args[0]))
    if not res.ok or res.value is None:
        return _fail(res)
    return f"Focusing on: {res.value.title}"


def cmd_bet(state: AppState, args: list[str]) -> str:
    """
    /bet           -> show bet options (closing without choosing changes nothing)
    /bet <minutes> -> commit to finishing the task in focus within <minutes>
    """
    if not args:
        opts = ", ".join(f"{m}m" for m in BET_OPTIONS)
        return f"Bet on finishing in time for {state.bet_engine.multiplier:g}x XP: /bet <minutes> ({opts})"
    try:
        minutes = float(args[0].rstrip("m"))
    except ValueError:
        return f"Bet needs a number of minutes, got {args[0]!r}."
    if minutes.is_integer():
        minutes = int(minutes)

    res = state.task_store.place_bet(minutes)
    if not res.ok or res.value is None:
        return _fail(res)
    countdown = state.heartbeat.recompute("bet")
    left = countdown.text if countdown is not None else "?"
    return f"Bet placed: {left} on the clock. Finish in time for {res.value.multiplier:g}x XP."


def cmd_step(state: AppState, args: list[str]) -> str:
    res = state.task_store.complete_current_step()
    if not res.ok or res.value is None:
        return _fail(res)
    sp = state.task_store.get_progress()
    tail = " All steps done, finish with /done <mood>." if sp.total and sp.current == sp.total else ""
    return f"Step done: {res.value.text} ({sp.current}/{sp.total}).{tail}"


def cmd_skip(state: AppState, args: list[str]) -> str:
    res = state.task_store.skip_current_step()
    if not res.ok or res.value is None:
        return _fail(res)
    return f"Next step: {res.value.text}"


def cmd_candy(state: AppState, args: list[str]) -> str:
    res = state.task_store.jump_to_candy()
    if not res.ok or res.value is None:
        return _fail(res)
    return f"Quick win: {res.value.text}"


def cmd_done(state: AppState, args: list[str]) -> str:
    """
    /done <mood 1-5>

    Level-ups and achievements are announced by the connector from store events.
    """
    if not args:
        labels = ", ".join(f"{m.value}={m.name.lower()}" for m in MoodLevel)
        return f"Usage: /done <mood> ({labels})"
    res = state.task_store.complete_task(args[0])
    if not res.ok or res.value is None:
        return _fail(res)

    c = res.value
    verdict = "bet won" if c.outcome.value == "on_time" else "bet missed, base XP kept"
    return f"Task done (+{c.xp_delta} XP, {verdict}). Streak: {c.streak_count}."


def cmd_forgive(state: AppState, args: list[str]) -> str:
    res = state.task_store.forgive_task()
    if not res.ok:
        return _fail(res)
    return "Forgiven. The task is closed, no XP lost, streak kept. Fresh start."


def cmd_abandon(state: AppState, args: list[str]) -> str:
    res = state.task_store.abandon_task()
    if not res.ok or res.value is None:
        return _fail(res)
    return f"Put back: {res.value.title}"


def cmd_unstuck(state: AppState, args: list[str]) -> str:
    """
    /unstuck       -> suggest a random easy task
    /unstuck take  -> focus on the last suggestion
    """
    if args and args[0].lower() in ("take", "yes", "ok"):
        task_id = state.pending_suggestion_id
        if task_id is None:
            return "No suggestion to take. Use /unstuck first."
        state.pending_suggestion_id = None
        return cmd_focus(state, [task_id])

    task = state.selector.suggest(state.task_store.backlog)
    if task is None:
        state.pending_suggestion_id = None
        return "Nothing easy in the backlog. Capture a tiny task with /add <title> --easy."
    state.pending_suggestion_id = task.id
    return f"Try this one: {task.title}. Use /unstuck take to focus on it."


def cmd_achievements(state: AppState, args: list[str]) -> str:
    engine = AchievementEngine()
    progress = state.task_store.achievements
    streak = state.task_store.progress.streak_count
    lines = [f"Achievements ({len(progress.unlocked)}/{len(ACHIEVEMENTS)}):"]
    for a in ACHIEVEMENTS:
        if a.id in progress.unlocked:
            mark = "x"
            tail = ""
        else:
            mark = " "
            tail = f" ({engine.percent(progress, a.id, streak=streak)}%)"
        lines.append(f"  [{mark}] {a.name}: {a.description}{tail}")
    return "\n".join(lines)


def cmd_timer(state: AppState, args: list[str]) -> str:
    countdown = state.heartbeat.recompute("timer")
    if countdown is None:
        return "No bet running."
    return f"{countdown.text} left{' - hurry!' if countdown.urgent else ''}"


def cmd_foreground(state: AppState, args: list[str]) -> str:
    """Simulate the app coming back to the foreground (forces a recompute)."""
    runner = state.heartbeat_runner
    if runner is not None:
        runner.signal_foreground()
    countdown = state.heartbeat.on_foreground()
    if countdown is None:
        return "Back in the foreground. No bet running."
    return f"Back in the foreground. {countdown.text} left."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show XP, level, streak and focus.")
registry.register("add", cmd_add, help_text="Capture a task: /add <title> [--easy] [--min N] [| steps]")
registry.register("tasks", cmd_tasks, help_text="List the backlog.", aliases=["ls"])
registry.register("focus", cmd_focus, help_text="Focus on a task: /focus <number|id>.")
registry.register("bet", cmd_bet, help_text="Bet on finishing in time: /bet <minutes>.")
registry.register("step", cmd_step, help_text="Complete the current micro-step.")
registry.register("skip", cmd_skip, help_text="Skip to the next open micro-step.")
registry.register("candy", cmd_candy, help_text="Jump to the easiest open step.")
registry.register("done", cmd_done, help_text="Complete the task in focus: /done <mood 1-5>.")
registry.register("forgive", cmd_forgive, help_text="Close the task in focus without penalty.")
registry.register("abandon", cmd_abandon, help_text="Put the task in focus back, unresolved.")
registry.register("unstuck", cmd_unstuck, help_text="Suggest an easy task: /unstuck [take].")
registry.register(
    "achievements", cmd_achievements, help_text="Show unlocked badges and progress.", aliases=["badges"]
)
registry.register("timer", cmd_timer, help_text="Show the bet countdown.")
registry.register("fg", cmd_foreground, help_text="Resync timers after a pause.")
