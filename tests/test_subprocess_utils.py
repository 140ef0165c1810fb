from __future__ import annotations

import io
import subprocess
import sys

import pytest

from cloudrun_kit.subprocess_utils import (
    CommandError,
    CommandNotFoundError,
    CommandTimeoutError,
    run_command,
)


class _FakeTty(io.StringIO):
    def isatty(self) -> bool:  # type: ignore[override]
        return True


_BRAILLE_FRAMES = {"⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"}


def _contains_braille_spinner(text: str) -> bool:
    return any(ch in text for ch in _BRAILLE_FRAMES)


def test_stream_output_shows_progress_when_idle(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    stream_output=True 인 경우에도, 일정 시간 출력이 없으면 진행표시(⠙ 등)가 렌더링되어야 한다.
    """
    fake_err = _FakeTty()
    fake_out = io.StringIO()
    monkeypatch.setattr(sys, "stderr", fake_err)
    monkeypatch.setattr(sys, "stdout", fake_out)

    result = run_command(
        [sys.executable, "-c", "import time; time.sleep(0.3); print('pushed')"],
        stream_output=True,
        timeout=5,
        spinner_message="이미지 푸시 중",
        show_progress=True,
        progress_style="braille",
        progress_idle_seconds=0.05,
        progress_interval=0.02,
    )

    assert result.returncode == 0
    assert "pushed" in result.stdout
    assert "pushed" in fake_out.getvalue()
    assert _contains_braille_spinner(fake_err.getvalue()), fake_err.getvalue()


def test_capture_mode_shows_progress_when_idle(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_err = _FakeTty()
    monkeypatch.setattr(sys, "stderr", fake_err)

    result = run_command(
        [sys.executable, "-c", "import time; time.sleep(0.3)"],
        timeout=5,
        spinner_message="API 활성화 중",
        show_progress=True,
        progress_style="braille",
        progress_idle_seconds=0.05,
        progress_interval=0.02,
    )

    assert result.returncode == 0
    assert _contains_braille_spinner(fake_err.getvalue()), fake_err.getvalue()


def test_progress_disabled_by_env(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_err = _FakeTty()
    monkeypatch.setattr(sys, "stderr", fake_err)
    monkeypatch.setenv("CLI_SHOW_PROGRESS", "false")

    run_command(
        [sys.executable, "-c", "import time; time.sleep(0.2)"],
        timeout=5,
        progress_idle_seconds=0.01,
        progress_interval=0.02,
    )

    assert fake_err.getvalue() == ""


def test_capture_mode_returns_stdout() -> None:
    result = run_command([sys.executable, "-c", "print('https://demo-abc.a.run.app')"], show_progress=False)
    assert result.stdout.strip() == "https://demo-abc.a.run.app"


def test_nonzero_exit_raises_command_error_with_stderr() -> None:
    cmd = [
        sys.executable,
        "-c",
        "import sys; sys.stderr.write('FAILED_PRECONDITION: billing'); sys.exit(3)",
    ]
    with pytest.raises(CommandError) as excinfo:
        run_command(cmd, show_progress=False)

    assert excinfo.value.returncode == 3
    assert "FAILED_PRECONDITION" in excinfo.value.output
    assert "exit=3" in str(excinfo.value)


def test_stream_mode_nonzero_exit_keeps_combined_output(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys, "stdout", io.StringIO())
    cmd = [
        sys.executable,
        "-c",
        "import sys; print('step 1'); sys.stderr.write('denied\\n'); sys.exit(1)",
    ]
    with pytest.raises(CommandError) as excinfo:
        run_command(cmd, stream_output=True, show_progress=False, timeout=5)

    assert "step 1" in excinfo.value.output
    assert "denied" in excinfo.value.output


def test_missing_binary_raises_command_not_found() -> None:
    with pytest.raises(CommandNotFoundError) as excinfo:
        run_command(["definitely-not-a-real-gcloud-binary", "--version"], show_progress=False)

    assert "definitely-not-a-real-gcloud-binary" in str(excinfo.value)


def test_timeout_raises_command_timeout_error() -> None:
    with pytest.raises(CommandTimeoutError):
        run_command(
            [sys.executable, "-c", "import time; time.sleep(5)"],
            timeout=0.3,
            show_progress=False,
        )


def test_stream_mode_timeout_reaps_killed_process(monkeypatch: pytest.MonkeyPatch) -> None:
    started: list[subprocess.Popen] = []
    real_popen = subprocess.Popen

    class _RecordingPopen(real_popen):  # type: ignore[misc, valid-type]
        def __init__(self, *args, **kwargs) -> None:  # noqa: ANN002, ANN003
            super().__init__(*args, **kwargs)
            started.append(self)

    monkeypatch.setattr(subprocess, "Popen", _RecordingPopen)
    monkeypatch.setattr(sys, "stdout", io.StringIO())

    with pytest.raises(CommandTimeoutError):
        run_command(
            [sys.executable, "-c", "import time; time.sleep(5)"],
            stream_output=True,
            timeout=0.3,
            show_progress=False,
        )

    assert len(started) == 1
    # wait() 로 회수되었다면 returncode 가 채워져 있다.
    assert started[0].returncode is not None
