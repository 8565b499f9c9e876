#!/usr/bin/env python3
"""
Key bindings for watch mode.
"""

KEYS = {
    'q': {
        'help': 'Quit watch mode',
        'action': 'quit',
    },
    'h': {
        'help': 'Show a hint for the current exercise',
        'action': 'hint',
    },
    'l': {
        'help': 'List all exercises and their status',
        'action': 'list',
    },
    'n': {
        'help': 'Skip to the next incomplete exercise',
        'action': 'next',
    },
}

CONFIRM_KEY = 'y'


def get_key_action(key: str) -> str:
    """Get the action bound to a key, or '' for unbound keys"""
    binding = KEYS.get(key)
    return binding['action'] if binding else ''


def get_key_help() -> str:
    """Get the key help line shown while watching"""
    return "   ".join(f"[bold]{key}[/bold] {binding['help'].lower()}" for key, binding in KEYS.items())
