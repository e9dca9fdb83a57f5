"""Quote commands for quotebook CLI: status, list, add, edit, pin, delete, boost, decay."""

import logging
from typing import TYPE_CHECKING

from quotebook.cli.commands.helpers import (
    format_quote,
    optional_input,
    print_json,
    validate_input,
)
from quotebook.storage import quote_to_record

if TYPE_CHECKING:
    from quotebook import QuoteBook

logger = logging.getLogger(__name__)


def cmd_status(args, book: "QuoteBook"):
    """Show which backend is active and how much it holds."""
    quotes, categories = book.load_view()
    backend = "remote database" if book.is_remote_active() else "local storage"
    pinned = sum(1 for q in quotes if q.is_pinned)

    if args.json:
        print_json(
            {
                "backend": book.store.backend_name,
                "quotes": len(quotes),
                "pinned": pinned,
                "categories": len(categories),
            }
        )
        return

    print(f"Backend: {backend}")
    print(f"Quotes: {len(quotes)} ({pinned} pinned)")
    print(f"Categories: {len(categories)}")


def cmd_list(args, book: "QuoteBook"):
    """List quotes, optionally filtered by category and search text."""
    category = optional_input(args.category, "category", 100)
    search = optional_input(args.search, "search", 200)
    quotes = book.list_quotes(category=category, search=search)

    if args.limit:
        quotes = quotes[: args.limit]

    if args.json:
        print_json([quote_to_record(q) for q in quotes])
        return

    if not quotes:
        print("No quotes found.")
        return
    for quote in quotes:
        print(format_quote(quote))
        print()


def cmd_add(args, book: "QuoteBook"):
    """Capture a new quote."""
    quote = book.add_quote(
        validate_input(args.content, "content", 10000),
        title=optional_input(args.title, "title", 200),
        author=optional_input(args.author, "author", 200),
        comment=optional_input(args.comment, "comment", 2000),
        category=optional_input(args.category, "category", 100),
        is_pinned=args.pin,
    )
    print(f"✓ Quote saved: {quote.id} ({quote.category})")


def cmd_edit(args, book: "QuoteBook"):
    """Edit fields of an existing quote. Only the given options change."""
    changes = {}
    if args.content is not None:
        changes["content"] = validate_input(args.content, "content", 10000)
    if args.title is not None:
        changes["title"] = validate_input(args.title, "title", 200)
    if args.author is not None:
        changes["author"] = validate_input(args.author, "author", 200)
    if args.comment is not None:
        changes["comment"] = validate_input(args.comment, "comment", 2000)
    if args.category is not None:
        changes["category"] = validate_input(args.category, "category", 100)
    if args.confidence is not None:
        changes["confidence"] = args.confidence

    if not changes:
        print("Nothing to change.")
        return

    quote = book.update_quote(args.id, **changes)
    print(f"✓ Quote {quote.id} updated: {', '.join(sorted(changes))}")


def cmd_pin(args, book: "QuoteBook"):
    """Pin or unpin a quote (``pin`` / ``unpin``)."""
    pinned = args.command == "pin"
    quote = book.set_pinned(args.id, pinned)
    print(f"✓ Quote {quote.id} {'pinned' if pinned else 'unpinned'}")


def cmd_delete(args, book: "QuoteBook"):
    """Delete a quote."""
    if not args.yes:
        try:
            confirm = input(f"Delete quote {args.id}? [y/N] ")
        except (EOFError, KeyboardInterrupt):
            print()
            confirm = ""
        if confirm.strip().lower() not in ("y", "yes"):
            print("Aborted.")
            return
    book.delete_quote(args.id)
    print(f"✓ Quote {args.id} deleted")


def cmd_boost(args, book: "QuoteBook"):
    """Mark a quote as revisited, raising its confidence."""
    quote = book.boost(args.id)
    print(f"✓ Quote {quote.id} confidence now {quote.confidence:.2f}")


def cmd_decay(args, book: "QuoteBook"):
    """Run a decay sweep over stale quotes."""
    changed = book.decay_sweep()
    if changed:
        print(f"✓ Decayed {changed} stale quote(s)")
    else:
        print("No stale quotes to decay.")
