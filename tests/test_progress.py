"""Tests for the progress bar wrapper."""

import io
from unittest.mock import MagicMock, patch

import pytest

from poppante.core.progress import progress_iterator

pytestmark = pytest.mark.tier0


class _Terminal(io.StringIO):
    def isatty(self):
        return True


class TestProgressBarLifecycle:
    """The bar is finalized and only drawn on a terminal."""

    def test_finish_called_on_normal_completion(self, monkeypatch):
        monkeypatch.setattr("sys.stdout", _Terminal())
        with patch("poppante.core.progress.progressbar") as mock_pb:
            mock_bar = MagicMock()
            mock_pb.ProgressBar.return_value = mock_bar

            collected = list(progress_iterator(iter(range(5)), total=5, desc="Tests"))

            mock_bar.finish.assert_called_once()
            assert collected == [0, 1, 2, 3, 4]

    def test_finish_called_on_exception(self, monkeypatch):
        def exploding_items():
            yield 1
            raise RuntimeError("boom")

        monkeypatch.setattr("sys.stdout", _Terminal())
        with patch("poppante.core.progress.progressbar") as mock_pb:
            mock_bar = MagicMock()
            mock_pb.ProgressBar.return_value = mock_bar

            with pytest.raises(RuntimeError, match="boom"):
                for _ in progress_iterator(exploding_items(), total=5):
                    pass

            mock_bar.finish.assert_called_once()

    def test_bar_writes_to_current_stdout(self, monkeypatch):
        terminal = _Terminal()
        monkeypatch.setattr("sys.stdout", terminal)
        with patch("poppante.core.progress.progressbar") as mock_pb:
            list(progress_iterator(iter(range(3)), total=3))
            assert mock_pb.ProgressBar.call_args.kwargs["fd"] is terminal

    def test_captured_stdout_skips_bar(self, monkeypatch):
        """A stream that is not a terminal, as under CliRunner, gets no bar."""
        monkeypatch.setattr("sys.stdout", io.StringIO())
        with patch("poppante.core.progress.progressbar") as mock_pb:
            collected = list(progress_iterator(iter(range(4)), total=4))
            mock_pb.ProgressBar.assert_not_called()
            assert collected == [0, 1, 2, 3]

    def test_disabled_skips_bar(self):
        with patch("poppante.core.progress.progressbar") as mock_pb:
            assert list(progress_iterator(iter("ab"), total=2, enabled=False)) == ["a", "b"]
            mock_pb.ProgressBar.assert_not_called()
