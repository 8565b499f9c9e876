#!/usr/bin/env python3
"""
Completion status store.

One ``name = true|false`` line per exercise. The registry is the source of
truth for everything except the completed flag, which is overlaid from here.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import List

from .errors import StatusError
from .state import Exercise

logger = logging.getLogger(__name__)

_BOOLEANS = {'true': True, 'false': False}


def load_status(path: Path, exercises: List[Exercise]) -> None:
    """
    Overlay persisted completion flags onto the exercise list.

    Unknown names and lines that don't parse are ignored. A missing file
    leaves every exercise as it is.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding='utf-8', errors='replace')
    except FileNotFoundError:
        return
    except OSError as e:
        raise StatusError(f"Failed to read status file at {path}: {e}")

    by_name = {exercise.name: exercise for exercise in exercises}

    for line in content.splitlines():
        name, sep, value = line.rpartition('=')
        if not sep:
            continue
        completed = _BOOLEANS.get(value.strip())
        exercise = by_name.get(name.strip())
        if completed is None or exercise is None:
            logger.debug("Ignoring status line %r", line)
            continue
        exercise.completed = completed


def save_status(exercises: List[Exercise], path: Path) -> None:
    """Write every exercise's completion flag, replacing the file atomically"""
    path = Path(path)
    content = ''.join(
        f"{exercise.name} = {'true' if exercise.completed else 'false'}\n"
        for exercise in exercises
    )

    directory = path.parent if str(path.parent) else Path('.')
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f'.{path.name}.', dir=directory)
    except OSError as e:
        raise StatusError(f"Failed to write status file at {path}: {e}")

    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
        # mkstemp creates 0600; keep the mode a plain open() would give
        os.chmod(tmp_name, _file_mode(path))
        os.replace(tmp_name, path)
    except OSError as e:
        try:
            os.unlink(tmp_name)
        except OSError:
            logger.warning("Could not remove temporary status file %s", tmp_name)
        raise StatusError(f"Failed to write status file at {path}: {e}")


def _file_mode(path: Path) -> int:
    """Permission bits of the existing status file, or the umask default"""
    try:
        return path.stat().st_mode & 0o777
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def reset_status(path: Path) -> bool:
    """
    Delete the status file.

    Returns:
        True if a file was removed, False if there was nothing to reset
    """
    path = Path(path)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StatusError(f"Failed to delete status file at {path}: {e}")
    return True
