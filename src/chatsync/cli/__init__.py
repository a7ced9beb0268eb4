"""
ChatSync CLI — sync chat state across devices from the command line.

Each command group lives in its own module and is attached to the
main Click group by a register function.

Entry point: chatsync.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="chatsync")
@click.option("--verbose", "-v", is_flag=True, help="Log sync activity to stderr.")
def main(verbose: bool):
    """ChatSync — one chat history, every device.

    Pull, merge, push. Never a blind overwrite.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")


# ---------------------------------------------------------------------------
# Register all command groups from modular files
# ---------------------------------------------------------------------------

from .sync_cmd import register_sync_commands
from .backup import register_backup_commands
from .session import register_session_commands

register_sync_commands(main)
register_backup_commands(main)
register_session_commands(main)
