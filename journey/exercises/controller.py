#!/usr/bin/env python3
"""
Watch/verify controller.

Drives the verifier and the status store for the one-shot commands (run,
verify all, reset) and runs the interactive watch loop, which merges file
change events and keypresses into a small state machine:

    WATCHING --change--> VERIFYING --fail--> WATCHING
                                   --pass--> ADVANCE_PROMPT --y--> WATCHING (next)
                                                            --other--> WATCHING
                                                            (nothing left) ALL_COMPLETE
    WATCHING --q--> EXITING
    WATCHING --n--> WATCHING (next) | ALL_COMPLETE
"""

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from watchdog.events import EVENT_TYPE_DELETED

from .commands import CONFIRM_KEY, get_key_action, get_key_help
from .errors import JourneyError
from .file_watcher import DEBOUNCE_SECONDS, ChangeEvent, FileWatcher, debounce_accepts
from .keyboard import KeyboardInput
from .state import (
    Exercise,
    WatchSession,
    WatchState,
    find_exercise,
    find_next_exercise,
)
from .status import reset_status, save_status
from .verifier import Verifier

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.01


class WatchController:
    """Owns the exercise list and everything that changes it"""

    def __init__(
        self,
        exercises: List[Exercise],
        verifier: Verifier,
        status_path: Path,
        console: Console = None,
        key_source_factory: Callable = KeyboardInput,
        watcher_factory: Callable = FileWatcher,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        poll_interval: float = POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.exercises = exercises
        self.verifier = verifier
        self.status_path = Path(status_path)
        self.console = console or Console()
        self.key_source_factory = key_source_factory
        self.watcher_factory = watcher_factory
        self.debounce_seconds = debounce_seconds
        self.poll_interval = poll_interval
        self.clock = clock
        self.sleep = sleep

        self.state: Optional[WatchState] = None
        self.session: Optional[WatchSession] = None
        self.keys = None

    # ------------------------------------------------------------------
    # One-shot commands
    # ------------------------------------------------------------------

    def run_once(self, name: Optional[str] = None) -> bool:
        """
        Verify one exercise (by name, or the next incomplete one).

        Returns:
            True if it passed; the status file is updated in that case
        """
        index = self._select(name)
        exercise = self.exercises[index]

        self.console.print(f"[bold]Running exercise: {exercise.name}[/bold]")
        passed = self.verifier.verify(exercise)
        if passed:
            self._mark_complete(index)
            self.console.print("[bold green]Exercise completed![/bold green]")
        return passed

    def verify_all(self) -> bool:
        """Verify every exercise in order. Returns True if all of them pass."""
        self.console.print("[bold cyan]Verifying all exercises...[/bold cyan]")
        all_passing = True
        total = len(self.exercises)

        try:
            for i, exercise in enumerate(self.exercises, 1):
                self.console.print(f"\n[blue]Exercise {i}/{total}: {exercise.name}[/blue]")
                if self.verifier.verify(exercise):
                    exercise.completed = True
                else:
                    all_passing = False
        finally:
            save_status(self.exercises, self.status_path)

        if all_passing:
            self.console.print("\n[bold green]🎉 All exercises pass! Congratulations! 🎉[/bold green]")
        else:
            self.console.print("\n[bold yellow]Some exercises failed. Keep working on them![/bold yellow]")
            self.console.print("Use 'journey watch' to focus on the next incomplete exercise.")
        return all_passing

    def reset_status(self) -> bool:
        """Forget all progress. Returns False if there was nothing saved."""
        removed = reset_status(self.status_path)
        for exercise in self.exercises:
            exercise.completed = False

        if removed:
            self.console.print("[bold green]✅ Progress reset successfully![/bold green]")
            self.console.print("All exercises are now marked as incomplete.")
        else:
            self.console.print("[bold blue]ℹ️  No progress file found.[/bold blue]")
            self.console.print("All exercises are already marked as incomplete.")
        return removed

    def show_hint(self, name: Optional[str] = None):
        """Print the hint for an exercise (by name, or the next incomplete one)"""
        exercise = self.exercises[self._select(name)]
        self.console.print(Panel(
            exercise.hint or "[dim]No hint for this exercise.[/dim]",
            title=f"[yellow]Hint for {exercise.name}[/yellow]",
            border_style="yellow",
        ))

    def list_exercises(self):
        """Print every exercise with its completion status"""
        table = Table(title="Exercises", title_justify="left")
        table.add_column("#", justify="right", style="dim")
        table.add_column("", justify="center")
        table.add_column("Name")
        table.add_column("Mode", style="dim")

        for i, exercise in enumerate(self.exercises, 1):
            status = "[green]✓[/green]" if exercise.completed else "[red]✗[/red]"
            table.add_row(str(i), status, exercise.name, exercise.mode.value)

        self.console.print(table)
        done = sum(1 for exercise in self.exercises if exercise.completed)
        self.console.print(f"[dim]Progress: {done}/{len(self.exercises)} exercises complete[/dim]")

    # ------------------------------------------------------------------
    # Watch mode
    # ------------------------------------------------------------------

    def watch(self, start_index: Optional[int] = None) -> WatchState:
        """
        Run the interactive watch loop.

        Starts on ``start_index`` or the next incomplete exercise and keeps
        going until the user quits or every exercise is complete.

        Returns:
            The terminal state, ALL_COMPLETE or EXITING
        """
        index = start_index if start_index is not None else find_next_exercise(self.exercises)
        if index is None:
            self._show_all_complete()
            return self._set_state(WatchState.ALL_COMPLETE)

        with self.key_source_factory() as keys:
            self.keys = keys
            try:
                while index is not None:
                    state = self._watch_exercise(index)
                    if state is WatchState.WATCHING:
                        index = self.session.next_index
                    else:
                        index = None
            finally:
                self.keys = None
                self.session = None

        return self.state

    def step(self, watcher) -> WatchState:
        """One iteration of the loop: check the watcher, check the keyboard, sleep"""
        event = watcher.poll()
        if event is not None:
            state = self.handle_change(event)
            if self._leaving(state):
                return state

        key = self.keys.poll()
        if key is not None:
            state = self.handle_key(key)
            if self._leaving(state):
                return state

        self.sleep(self.poll_interval)
        return self.state

    def handle_change(self, event: ChangeEvent) -> WatchState:
        """React to a change of the watched file"""
        if event.kind == EVENT_TYPE_DELETED or not self.session.watched_path.is_file():
            # Editors that save by delete+recreate; the recreate event follows
            logger.debug("Watched file %s is gone, waiting for it to come back", event.path)
            return self.state

        if not debounce_accepts(event.timestamp, self.session.last_verify_time, self.debounce_seconds):
            logger.debug("Debounced %s event for %s", event.kind, event.path)
            return self.state

        self.session.last_verify_time = self.clock()
        self.console.clear()
        self.console.print("[bold cyan]File changed! Verifying...[/bold cyan]")

        state = self._verify_current()
        if not self._leaving(state):
            self._print_watching()
        return state

    def handle_key(self, key: str) -> WatchState:
        """React to a keypress while watching. Unbound keys are ignored."""
        action = get_key_action(key)
        current = self.session.current_index

        if action == 'quit':
            self.console.print("Exiting watch mode.")
            return self._set_state(WatchState.EXITING)

        if action == 'hint':
            self.show_hint(self.exercises[current].name)
        elif action == 'list':
            self.list_exercises()
        elif action == 'next':
            next_index = find_next_exercise(self.exercises, skip=current)
            if next_index is not None:
                self.session.next_index = next_index
            elif not self.exercises[current].completed:
                self.console.print("[yellow]No other incomplete exercises. Keep going on this one![/yellow]")
            else:
                self._show_all_complete()
                return self._set_state(WatchState.ALL_COMPLETE)
        else:
            logger.debug("Ignoring key %r", key)

        return self._set_state(WatchState.WATCHING)

    def _watch_exercise(self, index: int) -> WatchState:
        """Watch one exercise until the loop leaves it"""
        exercise = self.exercises[index]
        full_path = self.verifier.resolve(exercise)

        watcher = self.watcher_factory(full_path)
        watcher.start()
        try:
            self.session = WatchSession(
                current_index=index,
                watched_path=full_path,
                last_verify_time=self.clock(),
            )
            self._set_state(WatchState.WATCHING)

            self.console.clear()
            self.console.print(f"[bold]Watching exercise: {exercise.name}[/bold]")
            self.console.print(get_key_help())
            self.console.print("\n[bold cyan]Initial verification:[/bold cyan]")

            state = self._verify_current()
            if not self._leaving(state):
                self._print_watching()

            while not self._leaving(state):
                state = self.step(watcher)
            return state
        finally:
            watcher.stop()

    def _verify_current(self) -> WatchState:
        """VERIFYING, then either back to WATCHING or on to the advance prompt"""
        self._set_state(WatchState.VERIFYING)
        index = self.session.current_index

        # Ctrl+C must reach the toolchain while it runs
        with self.keys.cooked():
            passed = self.verifier.verify(self.exercises[index])
        if not passed:
            return self._set_state(WatchState.WATCHING)

        self._mark_complete(index)
        self._set_state(WatchState.ADVANCE_PROMPT)
        return self._advance_prompt()

    def _advance_prompt(self) -> WatchState:
        next_index = find_next_exercise(self.exercises)
        if next_index is None:
            self._show_all_complete()
            return self._set_state(WatchState.ALL_COMPLETE)

        self.console.print("[bold green]Exercise completed! Move to next? \\[y/n][/bold green]")
        key = self.keys.wait()
        if key == CONFIRM_KEY:
            self.session.next_index = next_index
        elif get_key_action(key) == 'quit':
            self.console.print("Exiting watch mode.")
            return self._set_state(WatchState.EXITING)
        return self._set_state(WatchState.WATCHING)

    def _leaving(self, state: WatchState) -> bool:
        """Whether the loop should leave the current exercise"""
        if state is not WatchState.WATCHING:
            return True
        return self.session.next_index is not None

    def _mark_complete(self, index: int):
        # Persist before prompting so a quit right after still keeps the result
        self.exercises[index].completed = True
        save_status(self.exercises, self.status_path)

    def _select(self, name: Optional[str]) -> int:
        if name:
            index = find_exercise(self.exercises, name)
            if index is None:
                raise JourneyError(f"Exercise '{name}' not found")
            return index

        index = find_next_exercise(self.exercises)
        if index is None:
            raise JourneyError("No incomplete exercises found")
        return index

    def _set_state(self, state: WatchState) -> WatchState:
        if state is not self.state:
            logger.debug("Watch state %s -> %s", self.state.value if self.state else None, state.value)
        self.state = state
        return state

    def _print_watching(self):
        exercise = self.exercises[self.session.current_index]
        self.console.print("\n[dim]Watching for changes...[/dim]")
        self.console.print(f"[dim]Target file: {exercise.path.name}[/dim]")
        self.console.print(get_key_help())

    def _show_all_complete(self):
        self.console.print("[bold green]🎉 All exercises completed! Congratulations! 🎉[/bold green]")
