"""Error taxonomy shared by the service layer, the stores and the CLI."""


class QuotebookError(Exception):
    """Base for all quotebook errors."""

    pass


class NotFoundError(QuotebookError):
    """Raised when the target of an operation does not exist."""

    def __init__(self, kind: str, record_id):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


class ConflictError(QuotebookError):
    """Raised when a write would violate a uniqueness rule (e.g. category name)."""

    pass


class InvalidFormatError(QuotebookError):
    """Raised for malformed input: empty required fields, bad snapshots."""

    pass


class ProtectedCategoryError(QuotebookError):
    """Raised when deleting the reserved Uncategorized category."""

    pass


class StorageError(QuotebookError):
    """Raised by store implementations on storage failures."""

    pass


class BackendUnavailableError(StorageError):
    """Raised when the remote database is unreachable or erroring.

    Read paths recover from this by falling back to the local store.
    Write paths let it propagate.
    """

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Remote backend unavailable during {operation}: {cause}")


class UnauthorizedOperationError(QuotebookError):
    """Raised by the SQL console when a statement hits the privilege denylist."""

    pass
