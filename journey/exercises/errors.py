#!/usr/bin/env python3
"""
Errors raised by the watch/verify engine.

Only setup and environment problems are exceptions. A file that fails to
compile or a test that fails is a normal outcome and is returned as False.
"""


class JourneyError(RuntimeError):
    """Base class for fatal errors that abort the requested operation"""


class RegistryError(JourneyError):
    """The exercise registry is missing or malformed"""


class StatusError(JourneyError):
    """The status file could not be read or written"""


class ExerciseFileError(JourneyError):
    """An exercise points at a source file that does not exist"""


class ToolchainError(JourneyError):
    """The compiler or a compiled test binary could not be started"""


class WatcherError(JourneyError):
    """The file watcher could not start or stopped delivering events"""
