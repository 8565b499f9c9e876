#!/usr/bin/env python3
"""
Journey - Exercise Runner CLI

Usage:
    journey watch
    journey run [NAME]
    journey list
    journey verify
"""

import sys
import argparse
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from . import __version__
from .config import DEFAULTS, get_config_path, load_config, set_config_value
from .exercises import (
    JourneyError,
    RegistryError,
    Verifier,
    WatchController,
    WatchState,
    find_next_exercise,
    load_exercises,
    load_status,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='journey',
        description='Journey - work through the course exercises one save at a time',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  journey watch                     # Watch the next incomplete exercise
  journey run variables1            # Verify one exercise
  journey next                      # Verify the next incomplete exercise
  journey hint                      # Hint for the next incomplete exercise
  journey list                      # Show progress
  journey verify                    # Verify every exercise
  journey reset                     # Forget all progress
  journey config compiler rustc     # Change a setting
        """
    )

    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--base-path', default='.',
                        help='Course root directory (default: current directory)')
    parser.add_argument('--info', metavar='FILE',
                        help='Exercise registry, relative to the base path (default: info.toml)')
    parser.add_argument('--status-file', metavar='FILE',
                        help='Progress file, relative to the base path (default: .journey-status)')
    parser.add_argument('--compiler', help='Compiler binary (default: rustc)')
    parser.add_argument('--edition', help='Language edition passed to the compiler')
    parser.add_argument('-v', '--verbose', action='store_true', help='Show debug logging')

    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')

    run = subparsers.add_parser('run', help='Run a specific exercise')
    run.add_argument('name', nargs='?', help='Name of the exercise (default: next incomplete)')

    subparsers.add_parser('next', help='Run the next incomplete exercise')
    subparsers.add_parser('list', help='List all exercises and their completion status')

    hint = subparsers.add_parser('hint', help='Show a hint for an exercise')
    hint.add_argument('name', nargs='?', help='Name of the exercise (default: next incomplete)')

    subparsers.add_parser('watch', help='Watch for file changes and verify exercises')
    subparsers.add_parser('verify', help='Verify all exercises')
    subparsers.add_parser('reset', help='Reset progress by deleting the status file')

    config = subparsers.add_parser('config', help='Show or change settings')
    config.add_argument('key', nargs='?', help='Setting to show or change')
    config.add_argument('value', nargs='?', help='New value')

    return parser


def setup_logging(verbose: bool = False):
    """Route log records through rich on stderr"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(message)s',
        datefmt='[%X]',
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def resolve_settings(args: argparse.Namespace, config: Dict[str, Any]) -> Dict[str, Any]:
    """Merge command-line flags over stored config"""
    base_path = Path(args.base_path).resolve()
    info_file = Path(args.info or config['info_file'])
    status_file = Path(args.status_file or config['status_file'])

    return {
        'base_path': base_path,
        'info_path': info_file if info_file.is_absolute() else base_path / info_file,
        'status_path': status_file if status_file.is_absolute() else base_path / status_file,
        'compiler': args.compiler or config['compiler'],
        'edition': args.edition or config['edition'],
        'debounce_seconds': _int_setting(config, 'debounce_ms') / 1000,
        'poll_interval': _int_setting(config, 'poll_interval_ms') / 1000,
        'timeout': _int_setting(config, 'timeout_s') or None,
    }


def _int_setting(config: Dict[str, Any], key: str) -> int:
    """Numeric setting, falling back to the default for a hand-edited bad value"""
    try:
        return int(config[key])
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid %s %r in config, using %s", key, config[key], DEFAULTS[key])
        return DEFAULTS[key]


def build_controller(settings: Dict[str, Any], console: Console) -> WatchController:
    """Load the registry and progress, and wire up the controller"""
    exercises = load_exercises(settings['info_path'])
    load_status(settings['status_path'], exercises)

    verifier = Verifier(
        base_path=settings['base_path'],
        compiler=settings['compiler'],
        edition=settings['edition'],
        console=console,
        timeout=settings['timeout'],
    )
    return WatchController(
        exercises=exercises,
        verifier=verifier,
        status_path=settings['status_path'],
        console=console,
        debounce_seconds=settings['debounce_seconds'],
        poll_interval=settings['poll_interval'],
    )


def run_config(args: argparse.Namespace, console: Console) -> int:
    """Show or change a setting"""
    config = load_config()

    if not args.key:
        console.print(f"[dim]{get_config_path()}[/dim]")
        for key in DEFAULTS:
            console.print(f"  {key} = {config[key]}")
        return 0

    if args.key not in DEFAULTS:
        console.print(f"[red]Unknown setting: {args.key}[/red]")
        console.print(f"Available: {', '.join(DEFAULTS)}")
        return 1

    if args.value is None:
        console.print(f"{args.key} = {config[args.key]}")
        return 0

    try:
        set_config_value(args.key, args.value)
    except ValueError:
        console.print(f"[red]Invalid value for {args.key}: {args.value}[/red]")
        return 1
    console.print(f"[green]{args.key} set to {args.value}[/green]")
    return 0


def dispatch(command: str, args: argparse.Namespace, controller: WatchController) -> int:
    """Run a course command and return the exit code"""
    console = controller.console

    if command == 'run':
        return 0 if controller.run_once(args.name) else 1

    if command == 'next':
        if find_next_exercise(controller.exercises) is None:
            console.print("[bold green]🎉 All exercises completed! Congratulations! 🎉[/bold green]")
            console.print("\nIf you want to start over, run 'journey reset'.")
            return 0
        return 0 if controller.run_once() else 1

    if command == 'list':
        controller.list_exercises()
        return 0

    if command == 'hint':
        controller.show_hint(args.name)
        return 0

    if command == 'watch':
        state = controller.watch()
        if state is WatchState.ALL_COMPLETE:
            console.print("\nIf you want to start over, run 'journey reset'.")
        return 0

    if command == 'verify':
        return 0 if controller.verify_all() else 1

    if command == 'reset':
        controller.reset_status()
        console.print("\nRun 'journey list' to see all exercises.")
        return 0

    raise ValueError(f"Unknown command: {command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)
    console = Console()

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == 'config':
        return run_config(args, console)

    settings = resolve_settings(args, load_config())

    try:
        controller = build_controller(settings, console)
        return dispatch(args.command, args, controller)
    except RegistryError as e:
        console.print(f"[bold red]ERROR: {escape(str(e))}[/bold red]")
        console.print("[yellow]Run this command from the course root directory, "
                      "or point --base-path at it.[/yellow]")
        return 1
    except JourneyError as e:
        console.print(f"[bold red]ERROR: {escape(str(e))}[/bold red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        console.print(f"[dim]Your progress is saved in {settings['status_path'].name}[/dim]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
