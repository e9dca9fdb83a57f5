"""Small helpers shared across quotebook modules."""

import os
from pathlib import Path


def get_quotebook_home() -> Path:
    """Return the quotebook data directory.

    Honors ``QUOTEBOOK_DATA_DIR`` and defaults to ``~/.quotebook``.
    The directory is not created here.
    """
    override = os.environ.get("QUOTEBOOK_DATA_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".quotebook"
