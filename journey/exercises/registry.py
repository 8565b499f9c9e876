#!/usr/bin/env python3
"""
Exercise registry loader.
Reads the ordered exercise list from an info.toml file.
"""

import tomllib
from pathlib import Path
from typing import Dict, List

from .errors import RegistryError
from .state import Exercise, Mode

REQUIRED_FIELDS = ('name', 'path', 'mode', 'hint')


def load_exercises(path: Path) -> List[Exercise]:
    """
    Load exercises from a TOML registry.

    The file must contain an ``[[exercises]]`` array of tables, each with
    string fields ``name``, ``path``, ``mode`` ("compile" or "test") and
    ``hint`` (which may be empty).

    Raises:
        RegistryError: If the file is missing or any record is malformed
    """
    path = Path(path)
    try:
        with open(path, 'rb') as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        raise RegistryError(f"Could not find exercise registry at {path}")
    except OSError as e:
        raise RegistryError(f"Failed to read exercises file at {path}: {e}")
    except tomllib.TOMLDecodeError as e:
        raise RegistryError(f"Failed to parse TOML content in {path}: {e}")

    if 'exercises' not in data:
        raise RegistryError(f"No 'exercises' field in {path}")

    records = data['exercises']
    if not isinstance(records, list):
        raise RegistryError(f"'exercises' in {path} is not an array")

    exercises = []
    seen = set()
    for position, record in enumerate(records, 1):
        exercise = _parse_exercise(record, position, path)
        if exercise.name in seen:
            raise RegistryError(f"Duplicate exercise name '{exercise.name}' in {path}")
        seen.add(exercise.name)
        exercises.append(exercise)

    return exercises


def _parse_exercise(record: Dict, position: int, source: Path) -> Exercise:
    """Build one Exercise from a TOML table"""
    if not isinstance(record, dict):
        raise RegistryError(f"Exercise #{position} in {source} is not a table")

    missing = [field for field in REQUIRED_FIELDS if field not in record]
    if missing:
        label = record.get('name', f'#{position}')
        raise RegistryError(
            f"Exercise {label} in {source} is missing: {', '.join(missing)}"
        )

    for field in REQUIRED_FIELDS:
        if not isinstance(record[field], str):
            label = record['name'] if isinstance(record['name'], str) else f'#{position}'
            raise RegistryError(f"Exercise {label} in {source}: '{field}' must be a string")

    try:
        mode = Mode(record['mode'].lower())
    except ValueError:
        raise RegistryError(
            f"Exercise {record['name']} in {source} has unknown mode "
            f"'{record['mode']}' (expected 'compile' or 'test')"
        )

    return Exercise(
        name=record['name'],
        path=Path(record['path']),
        mode=mode,
        hint=record['hint'],
    )
