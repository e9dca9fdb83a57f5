"""Snapshot export/import commands for quotebook CLI."""

import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from quotebook import QuoteBook


def cmd_export(args, book: "QuoteBook"):
    """Write a snapshot to a file, or stdout when no path is given."""
    payload = book.export_snapshot()
    if not args.path:
        print(payload)
        return
    path = Path(args.path).expanduser()
    path.write_text(payload + "\n", encoding="utf-8")
    print(f"✓ Exported to {path}", file=sys.stderr)


def cmd_import(args, book: "QuoteBook"):
    """Merge a snapshot file into the active store."""
    path = Path(args.path).expanduser()
    if not path.is_file():
        raise ValueError(f"File not found: {path}")
    result = book.import_snapshot(path.read_text(encoding="utf-8"))
    print(
        f"✓ Imported {result.quotes_inserted} new and {result.quotes_updated} updated quote(s), "
        f"{result.categories_inserted} new and {result.categories_updated} updated category(ies)"
    )
    if result.categories_skipped:
        print(f"  Skipped {result.categories_skipped} category(ies) whose name already exists")
