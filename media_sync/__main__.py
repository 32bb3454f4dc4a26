"""
Main entry point for the media-sync application.
This module handles top-level setup, exception handling, and CLI invocation.
"""

import asyncio
import logging
import sys

import typer
from rich.console import Console

from media_sync.cli.app import app
from media_sync.cli.formatters import format_error_with_suggestions
from media_sync.exceptions import MediaSyncError


def main() -> None:
    """Main entry point function."""
    log = logging.getLogger("media_sync")
    console = Console()

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]⚠️  Sync interrupted. The local store is left consistent.[/yellow]")
        sys.exit(0)
    except MediaSyncError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
