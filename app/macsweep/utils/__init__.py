"""Utility modules for macsweep.

This module exports commonly used utility functions.
"""

from macsweep.utils.formatting import (
    console,
    create_package_table,
    err_console,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from macsweep.utils.shell import CommandResult, command_exists, run_command
from macsweep.utils.size import calculate_size, format_days_ago, format_size

__all__ = [
    "CommandResult",
    "calculate_size",
    "command_exists",
    "console",
    "create_package_table",
    "err_console",
    "format_days_ago",
    "format_size",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
    "run_command",
]
