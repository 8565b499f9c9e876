"""
Journey - Exercise Runner

A terminal companion for working through a curriculum of small source-code
exercises. Verifies each exercise with the compiler, remembers what you've
finished, and re-checks your file every time you save it.
"""

__version__ = "0.1.0"
