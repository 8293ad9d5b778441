"""
Command-line interface for hookloop.

- cli_group.py: the click group and the check, init and watch commands

hookloop/src/hookloop/cli/__init__.py
"""

import logging
import sys

from .cli_group import HookloopContext, cli

__all__ = ["cli", "main"]


def main() -> None:
    """
    Main entry point for the hookloop CLI application.

    This function provides the entry point specified in pyproject.toml.
    """
    try:
        cli(obj=HookloopContext(), prog_name="hookloop")
    except SystemExit as e:
        sys.exit(e.code)
    except (RuntimeError, ValueError, OSError) as e:
        from rich.console import Console

        console = Console(stderr=True)
        console.print(f"[bold red]An unexpected error occurred: {e}[/bold red]")

        logger = logging.getLogger(__name__)
        if logger.hasHandlers():
            logger.error("Unhandled exception in CLI execution.", exc_info=True)
        else:
            import traceback

            traceback.print_exc()
        sys.exit(1)
