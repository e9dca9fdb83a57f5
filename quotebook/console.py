"""Raw SQL console.

Forwards one statement to the remote database and returns the rows. The
console is an operator tool, not a sandbox: apart from a small denylist of
privilege and server-file statements it runs whatever it is given, inside a
single transaction.
"""

import logging
import re
from typing import Any, Dict, List, Union

from quotebook.logging_config import log_store_event
from quotebook.protocols import (
    BackendUnavailableError,
    InvalidFormatError,
    UnauthorizedOperationError,
)
from quotebook.storage import QuoteStore, RemoteStore

logger = logging.getLogger(__name__)

MAX_STATEMENT_LENGTH = 10000

_DENYLIST = re.compile(
    r"""
    \b(?:GRANT|REVOKE)\b
    | \b(?:CREATE|ALTER|DROP)\s+(?:ROLE|USER)\b
    | \bDROP\s+DATABASE\b
    | \bSET\s+(?:LOCAL\s+|SESSION\s+)?ROLE\b
    | \bSET\s+SESSION\s+AUTHORIZATION\b
    | \bCOPY\b[^;]*\bPROGRAM\b
    | \bATTACH\s+(?:DATABASE\b|')
    | \bpg_(?:read_file|read_binary_file|ls_dir|stat_file)\b
    | \blo_(?:import|export)\b
    """,
    re.IGNORECASE | re.VERBOSE,
)


def check_statement(statement: str) -> str:
    """Validate a console statement and return it stripped.

    Raises:
        InvalidFormatError: Empty or oversized statement.
        UnauthorizedOperationError: Statement hits the denylist.
    """
    if not isinstance(statement, str) or not statement.strip():
        raise InvalidFormatError("SQL statement cannot be empty")
    statement = statement.strip()
    if len(statement) > MAX_STATEMENT_LENGTH:
        raise InvalidFormatError(f"SQL statement too long (max {MAX_STATEMENT_LENGTH} characters)")
    match = _DENYLIST.search(statement)
    if match:
        raise UnauthorizedOperationError(
            f"Statement refused: {' '.join(match.group(0).split())!r} is not allowed"
        )
    return statement


class SqlConsole:
    """Run raw SQL against the active remote store.

    Args:
        target: A QuoteBook or a store. Only a RemoteStore can execute SQL.
    """

    def __init__(self, target: Union[QuoteStore, Any]):
        self._store = getattr(target, "store", target)

    @property
    def available(self) -> bool:
        return isinstance(self._store, RemoteStore)

    def execute(self, statement: str) -> List[Dict[str, Any]]:
        """Execute one statement.

        Returns:
            Result rows as dicts, or ``[{"rowcount": n}]`` for statements that
            return no rows.

        Raises:
            BackendUnavailableError: No remote database is active, or the
                database rejected the statement.
            UnauthorizedOperationError: Statement hits the denylist.
        """
        statement = check_statement(statement)
        if not self.available:
            raise BackendUnavailableError(
                "execute_raw", RuntimeError("no remote database configured")
            )
        logger.info(f"Console statement: {statement[:200]}")
        rows = self._store.execute_raw(statement)
        log_store_event("sql", f"rows={len(rows)}", backend=self._store.backend_name)
        return rows
