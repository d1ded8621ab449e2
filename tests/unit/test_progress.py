from __future__ import annotations

from unittest.mock import Mock, patch

from location_grid.models.command import CommandOp, PersistCommand
from location_grid.services.progress import ProgressTracker, is_tty_enabled


def _command() -> PersistCommand:
    return PersistCommand(
        command_id=1,
        op=CommandOp.INSERT,
        entity="locations",
        organization_id="org-1",
        row_keys=("tmp-1", "tmp-2"),
        payload=({"location_name": "A"}, {"location_name": "B"}),
    )


def test_is_tty_enabled_returns_stdout_isatty():
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True
    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestProgressTracker:
    def test_init_with_tty_enabled(self):
        with patch('location_grid.services.progress.is_tty_enabled', return_value=True), \
             patch('location_grid.services.progress.tqdm') as mock_tqdm:
            tracker = ProgressTracker(5, description="Saving")
            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=5,
                desc="Saving",
                unit="call",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch('location_grid.services.progress.is_tty_enabled', return_value=False):
            tracker = ProgressTracker(5)
            assert tracker.enabled is False
            assert tracker.pbar is None
            tracker.start_command(_command())
            tracker.finish_command(success=False)
            assert (tracker.completed, tracker.failed) == (1, 1)

    def test_explicit_enabled_overrides_tty(self):
        with patch('location_grid.services.progress.is_tty_enabled', return_value=True):
            assert ProgressTracker(1, enabled=False).pbar is None

    def test_command_lifecycle_updates_bar(self):
        mock_pbar = Mock()
        with patch('location_grid.services.progress.is_tty_enabled', return_value=True), \
             patch('location_grid.services.progress.tqdm', return_value=mock_pbar):
            tracker = ProgressTracker(1, description="Saving")
            tracker.start_command(_command())
            mock_pbar.set_description.assert_called_with("Saving (insert x2)")

            tracker.add_commands(2)
            assert tracker.total_commands == 3
            assert mock_pbar.total == 3

            tracker.finish_command(success=False)
            mock_pbar.update.assert_called_once_with(1)
            mock_pbar.set_postfix.assert_called_with(failed=1)

    def test_add_commands_ignores_non_positive(self):
        tracker = ProgressTracker(2, enabled=False)
        tracker.add_commands(0)
        tracker.add_commands(-1)
        assert tracker.total_commands == 2

    def test_context_manager_closes(self):
        mock_pbar = Mock()
        with patch('location_grid.services.progress.tqdm', return_value=mock_pbar):
            with ProgressTracker(1, enabled=True) as tracker:
                assert tracker.pbar is mock_pbar
        mock_pbar.close.assert_called_once()
        assert tracker.pbar is None
