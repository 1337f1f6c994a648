"""
Click command implementations for rowmap CLI.

Commands are registered with the main CLI group via the
register_commands() function in rowmap.cli.
"""

from .config import config
from .exec import exec_cmd
from .ping import ping
from .raw import raw

COMMANDS = [
    config,
    exec_cmd,
    ping,
    raw,
]

__all__ = [
    "COMMANDS",
    "config",
    "exec_cmd",
    "ping",
    "raw",
]
