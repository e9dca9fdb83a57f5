"""
quotebook CLI - capture, organize and revisit quotes.

Usage:
    quotebook status [--json]
    quotebook list [--category C] [--search S] [--limit N] [--json]
    quotebook add CONTENT [--title T] [--author A] [--comment C] [--category C] [--pin]
    quotebook edit ID [--content C] [--title T] [--author A] [--comment C] [--category C]
    quotebook pin ID | unpin ID
    quotebook delete ID [--yes]
    quotebook categories [--json]
    quotebook category add NAME | category delete ID
    quotebook boost ID
    quotebook decay
    quotebook export [PATH]
    quotebook import PATH
    quotebook sql STATEMENT [--json]
"""

import argparse
import logging
import sys
from typing import List, Optional

from quotebook.cli.commands import (
    cmd_add,
    cmd_boost,
    cmd_categories,
    cmd_category,
    cmd_decay,
    cmd_delete,
    cmd_edit,
    cmd_export,
    cmd_import,
    cmd_list,
    cmd_pin,
    cmd_sql,
    cmd_status,
)
from quotebook.config import Settings
from quotebook.logging_config import setup_quotebook_logging
from quotebook.protocols import QuotebookError
from quotebook.service import QuoteBook

# Set up logging
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

COMMANDS = {
    "status": cmd_status,
    "list": cmd_list,
    "add": cmd_add,
    "edit": cmd_edit,
    "pin": cmd_pin,
    "unpin": cmd_pin,
    "delete": cmd_delete,
    "categories": cmd_categories,
    "category": cmd_category,
    "boost": cmd_boost,
    "decay": cmd_decay,
    "export": cmd_export,
    "import": cmd_import,
    "sql": cmd_sql,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quotebook",
        description="Personal quote keeping with a knowledge-freshness lifecycle",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # status
    p_status = subparsers.add_parser("status", help="Show backend and counts")
    p_status.add_argument("--json", "-j", action="store_true")

    # list
    p_list = subparsers.add_parser("list", help="List quotes")
    p_list.add_argument("--category", "-c", help="Only this category (全部 for all)")
    p_list.add_argument("--search", "-s", help="Case-insensitive substring search")
    p_list.add_argument("--limit", "-l", type=int, default=0, help="Show at most N quotes")
    p_list.add_argument("--json", "-j", action="store_true")

    # add
    p_add = subparsers.add_parser("add", help="Capture a new quote")
    p_add.add_argument("content", help="Quote text")
    p_add.add_argument("--title", "-t", help="Title")
    p_add.add_argument("--author", "-a", help="Author or source")
    p_add.add_argument("--comment", "-m", help="Personal comment")
    p_add.add_argument("--category", "-c", help="Category name (default: 未分类)")
    p_add.add_argument("--pin", "-p", action="store_true", help="Pin the quote")

    # edit
    p_edit = subparsers.add_parser("edit", help="Edit a quote")
    p_edit.add_argument("id", type=int, help="Quote ID")
    p_edit.add_argument("--content", help="New text")
    p_edit.add_argument("--title", "-t", help="New title")
    p_edit.add_argument("--author", "-a", help="New author")
    p_edit.add_argument("--comment", "-m", help="New comment")
    p_edit.add_argument("--category", "-c", help="New category")
    p_edit.add_argument("--confidence", type=float, help="Set confidence (0.0 to 1.0)")

    # pin / unpin
    for name, help_text in (("pin", "Pin a quote"), ("unpin", "Unpin a quote")):
        p_pin = subparsers.add_parser(name, help=help_text)
        p_pin.add_argument("id", type=int, help="Quote ID")

    # delete
    p_delete = subparsers.add_parser("delete", help="Delete a quote")
    p_delete.add_argument("id", type=int, help="Quote ID")
    p_delete.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")

    # categories
    p_categories = subparsers.add_parser("categories", help="List categories")
    p_categories.add_argument("--json", "-j", action="store_true")

    # category add/delete
    p_category = subparsers.add_parser("category", help="Category operations")
    cat_sub = p_category.add_subparsers(dest="category_action", required=True)
    cat_add = cat_sub.add_parser("add", help="Create a category")
    cat_add.add_argument("name", help="Category name")
    cat_delete = cat_sub.add_parser("delete", help="Delete a category")
    cat_delete.add_argument("id", type=int, help="Category ID")

    # lifecycle
    p_boost = subparsers.add_parser("boost", help="Mark a quote as revisited")
    p_boost.add_argument("id", type=int, help="Quote ID")
    subparsers.add_parser("decay", help="Decay quotes untouched for a week")

    # transfer
    p_export = subparsers.add_parser("export", help="Export a JSON snapshot")
    p_export.add_argument("path", nargs="?", help="Output file (default: stdout)")
    p_import = subparsers.add_parser("import", help="Merge a JSON snapshot")
    p_import.add_argument("path", help="Snapshot file")

    # sql
    p_sql = subparsers.add_parser("sql", help="Run SQL against the remote database")
    p_sql.add_argument("statement", help="One SQL statement")
    p_sql.add_argument("--json", "-j", action="store_true")

    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings()
        setup_quotebook_logging(settings.log_level, settings.data_dir / "logs")
        book = QuoteBook.from_settings(settings)
    except (ValueError, TypeError, OSError) as e:
        logger.error(f"Failed to initialize quotebook: {e}")
        sys.exit(1)

    try:
        COMMANDS[args.command](args, book)
    except QuotebookError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (ValueError, TypeError) as e:
        logger.error(f"Input validation error: {e}")
        sys.exit(1)
    finally:
        book.close()


if __name__ == "__main__":
    main()
