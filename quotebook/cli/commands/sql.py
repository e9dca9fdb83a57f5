"""Raw SQL console command for quotebook CLI."""

from typing import TYPE_CHECKING

from quotebook.cli.commands.helpers import print_json
from quotebook.console import SqlConsole

if TYPE_CHECKING:
    from quotebook import QuoteBook


def cmd_sql(args, book: "QuoteBook"):
    """Run one SQL statement against the remote database."""
    rows = SqlConsole(book).execute(args.statement)
    if args.json or not rows:
        print_json(rows)
        return
    columns = list(rows[0])
    print(" | ".join(columns))
    for row in rows:
        print(" | ".join("" if row.get(c) is None else str(row.get(c)) for c in columns))
    print(f"({len(rows)} row(s))")
