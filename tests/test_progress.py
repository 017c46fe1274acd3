from __future__ import annotations

import io

from gravmpi.progress import TqdmProgress, make_progress, null_progress


class _Tty(io.StringIO):
    def isatty(self):
        return True


def test_disabled_progress_is_noop():
    assert make_progress(False) is null_progress
    assert null_progress(0.5) is None


def test_progress_suppressed_when_data_stream_is_terminal():
    assert make_progress(True, data_stream=_Tty()) is null_progress


def test_progress_bar_enabled_for_redirected_data_stream():
    cb = make_progress(True, data_stream=io.StringIO())
    assert isinstance(cb, TqdmProgress)
    cb.close()


def test_tqdm_progress_renders_to_stream():
    err = io.StringIO()
    bar = TqdmProgress(err)
    for k in range(1, 5):
        bar(k / 4)
    assert "100%" in err.getvalue()


def test_tqdm_progress_close_is_idempotent():
    bar = TqdmProgress(io.StringIO())
    bar(0.5)
    bar.close()
    bar.close()
    assert bar.closed
