#!/usr/bin/env python3
"""
Exercise engine: registry, verification, progress and watch mode.

- Registry: ordered exercises loaded from info.toml
- Verifier: compiles (and optionally tests) one exercise with the toolchain
- Status store: remembers which exercises are complete
- Watch mode: re-verifies the current exercise on every save
"""

from .state import (
    Mode,
    WatchState,
    Exercise,
    VerificationOutcome,
    WatchSession,
    find_next_exercise,
    find_exercise,
)
from .errors import (
    JourneyError,
    RegistryError,
    StatusError,
    ExerciseFileError,
    ToolchainError,
    WatcherError,
)
from .registry import load_exercises
from .status import load_status, save_status, reset_status
from .verifier import Verifier
from .file_watcher import FileWatcher, ChangeEvent
from .keyboard import KeyboardInput
from .controller import WatchController

__all__ = [
    'Mode',
    'WatchState',
    'Exercise',
    'VerificationOutcome',
    'WatchSession',
    'find_next_exercise',
    'find_exercise',
    'JourneyError',
    'RegistryError',
    'StatusError',
    'ExerciseFileError',
    'ToolchainError',
    'WatcherError',
    'load_exercises',
    'load_status',
    'save_status',
    'reset_status',
    'Verifier',
    'FileWatcher',
    'ChangeEvent',
    'KeyboardInput',
    'WatchController',
]
