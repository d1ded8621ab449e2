from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from location_grid.models.command import PersistCommand

"""Progress display for command dispatch with tqdm (TTY only).

In non-TTY environments (CI, piped output) no bar is created so the log
stays free of ANSI control sequences.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """Return True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class ProgressTracker:
    """tqdm progress bar over persist commands.

    The total grows as the controller returns follow-up commands (held
    updates released after an insert, corrective writes).
    """

    def __init__(self, total_commands: int, *, description: str = "Saving changes", enabled: bool | None = None) -> None:
        self.total_commands = total_commands
        self.description = description
        self.completed = 0
        self.failed = 0

        self.enabled = is_tty_enabled() if enabled is None else enabled
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_commands,
                desc=description,
                unit="call",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def add_commands(self, count: int) -> None:
        if count <= 0:
            return
        self.total_commands += count
        if self.pbar is not None:
            self.pbar.total = self.total_commands
            self.pbar.refresh()

    def start_command(self, command: PersistCommand) -> None:
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({command.op.value} x{len(command.row_keys)})")

    def finish_command(self, success: bool = True) -> None:
        self.completed += 1
        if not success:
            self.failed += 1
        if self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_description(self.description)
            self.pbar.set_postfix(failed=self.failed)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
