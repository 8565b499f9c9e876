#!/usr/bin/env python3
"""
Raw keyboard input for watch mode.
Reads single keypresses without waiting for Enter, using prompt_toolkit's
input layer.
"""

import time
from collections import deque
from typing import Callable, Optional

from prompt_toolkit.input import Input, create_input
from prompt_toolkit.keys import Keys


class KeyboardInput:
    """
    Non-blocking keypress source.

    Use as a context manager: the terminal is put in raw mode on entry and
    restored on exit. Ctrl+C is raised as KeyboardInterrupt since raw mode
    stops the terminal from sending SIGINT.
    """

    def __init__(self, input_: Input = None, sleep: Callable[[float], None] = time.sleep):
        self._input = input_ or create_input()
        self._sleep = sleep
        self._pending = deque()
        self._raw = None

    def __enter__(self):
        self._raw = self._input.raw_mode()
        self._raw.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb):
        if self._raw is not None:
            self._raw.__exit__(exc_type, exc, tb)
            self._raw = None

    def cooked(self):
        """Temporarily restore normal terminal mode (echo, line editing, SIGINT)"""
        return self._input.cooked_mode()

    def poll(self) -> Optional[str]:
        """Return the next pressed key, or None if nothing was typed"""
        if not self._pending:
            for key_press in self._input.read_keys():
                self._pending.append(_key_name(key_press.key))
        if not self._pending:
            return None

        key = self._pending.popleft()
        if key == Keys.ControlC.value:
            raise KeyboardInterrupt
        return key

    def wait(self, interval: float = 0.01) -> str:
        """Block until a key is pressed"""
        while True:
            key = self.poll()
            if key is not None:
                return key
            self._sleep(interval)


def _key_name(key) -> str:
    if isinstance(key, Keys):
        return key.value
    return key
