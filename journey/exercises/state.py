#!/usr/bin/env python3
"""
State for the exercise runner.
Exercises, verification results and the working state of a watch session.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional


class Mode(Enum):
    """How an exercise is verified"""
    COMPILE = 'compile'  # File must build
    TEST = 'test'        # File must build and its embedded tests must pass


class WatchState(Enum):
    """States of the interactive watch loop"""
    WATCHING = 'watching'              # Waiting for a file change or a keypress
    VERIFYING = 'verifying'            # Toolchain running, input is not processed
    ADVANCE_PROMPT = 'advance_prompt'  # Passed, asking whether to move on
    ALL_COMPLETE = 'all_complete'      # Nothing left to do
    EXITING = 'exiting'                # User quit


@dataclass
class Exercise:
    """A single curriculum unit"""
    name: str
    path: Path                  # Relative to the course base directory
    mode: Mode
    hint: str = ''
    completed: bool = False


@dataclass
class VerificationOutcome:
    """Result of one toolchain run against an exercise"""
    passed: bool
    diagnostic_text: str = ''
    stage: str = 'compile'      # compile|test - which step produced the result


@dataclass
class WatchSession:
    """Working state while one exercise is being watched"""
    current_index: int
    watched_path: Path
    last_verify_time: float
    next_index: Optional[int] = None  # Set when the loop should move to another exercise


def find_next_exercise(exercises: List[Exercise], skip: Optional[int] = None) -> Optional[int]:
    """
    Find the first incomplete exercise in curriculum order.

    Args:
        exercises: The ordered exercise list
        skip: Index to pass over (e.g. the exercise currently being watched)

    Returns:
        Index of the exercise, or None if every candidate is complete
    """
    for index, exercise in enumerate(exercises):
        if index == skip:
            continue
        if not exercise.completed:
            return index
    return None


def find_exercise(exercises: List[Exercise], name: str) -> Optional[int]:
    """Get the index of an exercise by name"""
    for index, exercise in enumerate(exercises):
        if exercise.name == name:
            return index
    return None
