#!/usr/bin/env python3
"""
Exercise verifier.
Runs the compiler (and, in test mode, the compiled test binary) against an
exercise file and reports whether it passed.
"""

import logging
import os
import re
import subprocess
import tempfile
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from rich.console import Console

from .errors import ExerciseFileError, ToolchainError
from .state import Exercise, Mode, VerificationOutcome

logger = logging.getLogger(__name__)

DEFAULT_COMPILER = 'rustc'
DEFAULT_EDITION = '2021'

EXE_SUFFIX = '.exe' if os.name == 'nt' else ''


@contextmanager
def scratch_binary(label: str) -> Iterator[Path]:
    """
    Reserve a unique path for a compiled artifact and remove it afterwards.

    The name combines a timestamp and a random suffix so interleaved runs
    never collide. Removal failures are logged, not raised.
    """
    safe_label = re.sub(r'[^A-Za-z0-9_-]+', '_', label) or 'exercise'
    stamp = time.strftime('%Y%m%d%H%M%S')
    path = Path(tempfile.gettempdir()) / (
        f"journey_{safe_label}_{stamp}_{uuid.uuid4().hex[:8]}{EXE_SUFFIX}"
    )
    try:
        yield path
    finally:
        _discard(path)


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove temporary binary %s: %s", path, e)


class Verifier:
    """Checks exercises with the external toolchain"""

    def __init__(
        self,
        base_path: Path,
        compiler: str = DEFAULT_COMPILER,
        edition: str = DEFAULT_EDITION,
        console: Console = None,
        timeout: Optional[float] = None,
    ):
        self.base_path = Path(base_path)
        self.compiler = compiler
        self.edition = str(edition)
        self.timeout = timeout  # Seconds per toolchain run, None to wait forever
        self.console = console or Console()

    def resolve(self, exercise: Exercise, base_path: Optional[Path] = None) -> Path:
        """Get the full path of an exercise file, which must exist"""
        full_path = Path(base_path or self.base_path) / exercise.path
        if not full_path.is_file():
            raise ExerciseFileError(
                f"Exercise file for {exercise.name} not found at {full_path}"
            )
        return full_path

    def verify(self, exercise: Exercise, base_path: Optional[Path] = None) -> bool:
        """
        Verify an exercise and print the result.

        Returns:
            True if the exercise passed. The exercise itself is not modified.

        Raises:
            ExerciseFileError: The exercise file does not exist
            ToolchainError: The compiler or test binary could not be started
        """
        verb = 'Compiling' if exercise.mode is Mode.COMPILE else 'Testing'
        self.console.print(f"[bold cyan]{verb} {exercise.name}...[/bold cyan]")

        outcome = self.check(exercise, base_path)

        if outcome.passed:
            if exercise.mode is Mode.COMPILE:
                self.console.print(f"[bold green]✅ Successfully compiled {exercise.name}[/bold green]")
            else:
                self.console.print(f"[bold green]✅ Tests passed for {exercise.name}[/bold green]")
        else:
            if outcome.stage == 'compile':
                what = 'compile' if exercise.mode is Mode.COMPILE else 'compile test for'
                self.console.print(f"[bold red]❌ Failed to {what} {exercise.name}:[/bold red]")
            else:
                self.console.print(f"[bold red]❌ Tests failed for {exercise.name}:[/bold red]")
            if outcome.diagnostic_text:
                self.console.print(outcome.diagnostic_text, markup=False, highlight=False)

        return outcome.passed

    def check(self, exercise: Exercise, base_path: Optional[Path] = None) -> VerificationOutcome:
        """Run the toolchain for an exercise without printing anything"""
        full_path = self.resolve(exercise, base_path)

        with scratch_binary(exercise.name) as output:
            if exercise.mode is Mode.COMPILE:
                return self._compile(full_path, output)
            return self._test(full_path, output)

    def _compile(self, source: Path, output: Path, test: bool = False) -> VerificationOutcome:
        cmd = [self.compiler, f'--edition={self.edition}']
        if test:
            cmd.append('--test')
        cmd.extend([str(source), '-o', str(output)])

        result = self._execute(cmd, cwd=source.parent, what=f"{self.compiler} on {source}")
        return VerificationOutcome(
            passed=result.returncode == 0,
            diagnostic_text=result.stderr,
            stage='compile',
        )

    def _test(self, source: Path, output: Path) -> VerificationOutcome:
        compiled = self._compile(source, output, test=True)
        if not compiled.passed:
            return compiled

        result = self._execute([str(output)], cwd=source.parent, what=f"test binary for {source}")
        diagnostics = result.stdout
        if result.stderr:
            diagnostics = f"{diagnostics}\n{result.stderr}" if diagnostics else result.stderr
        return VerificationOutcome(
            passed=result.returncode == 0,
            diagnostic_text=diagnostics,
            stage='test',
        )

    def _execute(self, cmd: List[str], cwd: Path, what: str) -> subprocess.CompletedProcess:
        logger.debug("Running %s", ' '.join(cmd))
        try:
            return subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                encoding='utf-8',
                errors='replace',
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.debug("Timed out: %s", ' '.join(cmd))
            return subprocess.CompletedProcess(
                cmd, -1, '', f"Timed out after {self.timeout} seconds running {what}"
            )
        except OSError as e:
            raise ToolchainError(f"Failed to execute {what}: {e}")
