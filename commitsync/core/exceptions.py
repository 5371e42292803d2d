"""Exceptions raised by the persistence side of the sync pipeline."""

from typing import Any


class PersistenceFailure(Exception):
    """An upsert or related write failed while storing synced data.

    Carries enough context (row counts, a few sample payloads) to debug the
    failing batch from the log line alone.
    """

    def __init__(
        self,
        message: str,
        *,
        row_count: int = 0,
        samples: list[dict[str, Any]] | None = None,
    ):
        self.message = message
        self.row_count = row_count
        self.samples = samples or []
        super().__init__(message)
