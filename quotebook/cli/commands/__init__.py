"""CLI command modules for quotebook.

Each module holds related command handlers; ``quotebook.cli.__main__``
builds the parser and dispatches to them.
"""

from quotebook.cli.commands.categories import cmd_categories, cmd_category
from quotebook.cli.commands.helpers import print_json, validate_input
from quotebook.cli.commands.quotes import (
    cmd_add,
    cmd_boost,
    cmd_decay,
    cmd_delete,
    cmd_edit,
    cmd_list,
    cmd_pin,
    cmd_status,
)
from quotebook.cli.commands.sql import cmd_sql
from quotebook.cli.commands.transfer import cmd_export, cmd_import

__all__ = [
    "cmd_add",
    "cmd_boost",
    "cmd_categories",
    "cmd_category",
    "cmd_decay",
    "cmd_delete",
    "cmd_edit",
    "cmd_export",
    "cmd_import",
    "cmd_list",
    "cmd_pin",
    "cmd_sql",
    "cmd_status",
    "print_json",
    "validate_input",
]
