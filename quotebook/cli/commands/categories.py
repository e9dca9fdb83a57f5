"""Category commands for quotebook CLI."""

from typing import TYPE_CHECKING

from quotebook.cli.commands.helpers import print_json, validate_input
from quotebook.storage import category_to_record

if TYPE_CHECKING:
    from quotebook import QuoteBook


def cmd_categories(args, book: "QuoteBook"):
    """List categories."""
    categories = book.list_categories()
    if args.json:
        print_json([category_to_record(c) for c in categories])
        return
    for category in categories:
        marker = " (default)" if category.is_sentinel else ""
        print(f"{category.id:>14}  {category.name}{marker}")


def cmd_category(args, book: "QuoteBook"):
    """Handle ``category add`` / ``category delete``."""
    if args.category_action == "add":
        category = book.add_category(validate_input(args.name, "name", 100))
        print(f"✓ Category added: {category.name} ({category.id})")
    elif args.category_action == "delete":
        book.delete_category(args.id)
        print(f"✓ Category {args.id} deleted; its quotes moved to the default category")
