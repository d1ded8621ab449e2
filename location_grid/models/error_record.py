from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from .command import GridFailure

"""ErrorRecord model for error logging.

This module defines the ErrorRecord dataclass used for structured error
logging of failed persistence calls. `row_key` is "-" for failures that are
not tied to a single row (for example a whole bulk import batch), and
`column` is "-" when the failure is not scoped to one cell.
"""

__all__ = [
    "ErrorRecord",
]

NO_SCOPE = "-"


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        entity: Store table the command targeted
        row_key: Affected row key, "-" when several rows are affected
        column: Affected column, "-" when not cell scoped
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Store error message or description
    """
    timestamp: str  # ISO8601 UTC
    entity: str
    row_key: str
    column: str
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(
        entity: str,
        row_key: str | None,
        column: str | None,
        error_type: str,
        message: str,
    ) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            entity=entity,
            row_key=row_key or NO_SCOPE,
            column=column or NO_SCOPE,
            error_type=error_type,
            message=message,
        )

    @classmethod
    def from_failure(cls, failure: GridFailure) -> ErrorRecord:
        """Record for a failed persist command; row and column scope only when single."""
        command = failure.command
        columns = command.columns
        return cls.create(
            entity=command.entity,
            row_key=command.row_keys[0] if len(command.row_keys) == 1 else None,
            column=columns[0] if len(columns) == 1 else None,
            error_type=failure.error_type,
            message=failure.message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
