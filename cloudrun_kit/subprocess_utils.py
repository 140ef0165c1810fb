from __future__ import annotations

import os
import queue
import shutil
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from textwrap import shorten
from typing import Mapping, Optional, Sequence

from .logging_utils import get_logger


logger = get_logger(__name__)


# -----------------------------
# CLI progress indicator config
# -----------------------------
_cli_progress_lock = threading.Lock()
_cli_show_progress: bool = True
_cli_progress_idle_seconds: float = 2.0
_cli_progress_style: str = "braille"  # braille | ascii
_cli_progress_interval: float = 0.12

_EXCERPT_WIDTH = 2000


class CommandError(RuntimeError):
    """외부 명령(gcloud/docker)이 0 이 아닌 코드로 종료된 경우."""

    def __init__(self, cmd: Sequence[str], returncode: int, output: str = "", message: str | None = None) -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        self.output = output
        if message is None:
            detail = ""
            if output.strip():
                detail = "\n출력:\n" + shorten(output.strip(), width=_EXCERPT_WIDTH)
            message = f"명령 실행 실패: {' '.join(self.cmd)} (exit={returncode}){detail}"
        super().__init__(message)


class CommandNotFoundError(CommandError):
    def __init__(self, cmd: Sequence[str]) -> None:
        super().__init__(
            cmd,
            127,
            message=(
                f"필요한 명령을 찾을 수 없습니다: {cmd[0]} "
                "(gcloud/docker 가 설치되어 PATH 에 있는지 확인하세요)"
            ),
        )


class CommandTimeoutError(CommandError):
    def __init__(self, cmd: Sequence[str], timeout: float | None) -> None:
        super().__init__(
            cmd,
            -1,
            message=f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {' '.join(cmd)}",
        )


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: str
    stderr: str


def command_exists(name: str) -> bool:
    return shutil.which(name) is not None


def configure_cli_progress(
    *,
    show_progress: bool | None = None,
    idle_seconds: float | None = None,
    style: str | None = None,
    interval: float | None = None,
) -> None:
    """
    전역 CLI 진행 표시 설정. CLI 엔트리포인트에서 DeployConfig 값을 한 번 반영한다.
    """
    global _cli_show_progress, _cli_progress_idle_seconds, _cli_progress_style, _cli_progress_interval
    with _cli_progress_lock:
        if show_progress is not None:
            _cli_show_progress = bool(show_progress)
        if idle_seconds is not None:
            _cli_progress_idle_seconds = float(idle_seconds)
        if style is not None:
            _cli_progress_style = str(style)
        if interval is not None:
            _cli_progress_interval = float(interval)


def _is_tty(stream) -> bool:  # noqa: ANN001
    isatty = getattr(stream, "isatty", None)
    if isatty is None:
        return False
    try:
        return bool(isatty())
    except (OSError, ValueError):
        return False


def _get_progress_defaults() -> tuple[bool, float, str, float]:
    with _cli_progress_lock:
        return (
            _cli_show_progress,
            _cli_progress_idle_seconds,
            _cli_progress_style,
            _cli_progress_interval,
        )


def _parse_env_bool(name: str) -> bool | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _parse_env_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError:
        return None


_BRAILLE_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]
_ASCII_FRAMES = ["|", "/", "-", "\\"]


def _select_frames(style: str) -> list[str]:
    if (style or "").strip().lower() == "ascii":
        return _ASCII_FRAMES
    return _BRAILLE_FRAMES


def _format_elapsed(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:0.1f}s"
    minutes = int(seconds // 60)
    sec = int(seconds % 60)
    return f"{minutes}m{sec:02d}s"


class _IdleProgressIndicator:
    """
    일정 시간 출력이 없을 때만 stderr 한 줄에 스피너 + 메시지 + 경과시간을 그린다.

    docker push / gcloud run deploy 처럼 수십 초 동안 조용한 명령에서
    멈춘 것처럼 보이지 않게 하기 위함.
    """

    def __init__(
        self,
        *,
        message: str,
        stream=None,  # noqa: ANN001
        style: str = "braille",
        interval: float = 0.12,
        idle_seconds: float = 2.0,
    ) -> None:
        self._message = message
        self._stream = stream if stream is not None else sys.stderr
        self._frames = _select_frames(style)
        self._interval = max(float(interval), 0.02)
        self._idle_seconds = max(float(idle_seconds), 0.0)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_len = 0
        self._shown = False

    def _render(self, frame_idx: int, elapsed_seconds: float) -> None:
        frame = self._frames[frame_idx % len(self._frames)]
        text = f"{frame} {self._message}  {_format_elapsed(elapsed_seconds)}"
        self._last_len = max(self._last_len, len(text))
        self._stream.write("\r" + text)
        self._stream.flush()
        self._shown = True

    def clear(self) -> None:
        if not self._shown or self._last_len <= 0:
            return
        self._stream.write("\r" + (" " * self._last_len) + "\r")
        self._stream.flush()
        self._shown = False

    def start(self, *, start_time: float, last_activity_getter) -> None:  # noqa: ANN001
        if self._thread is not None:
            return

        def _loop() -> None:
            idx = 0
            while not self._stop.is_set():
                now = time.monotonic()
                idle = now - float(last_activity_getter())
                if idle < self._idle_seconds:
                    self.clear()
                    time.sleep(min(self._interval, max(self._idle_seconds - idle, 0.02)))
                    continue
                self._render(idx, now - start_time)
                idx += 1
                time.sleep(self._interval)

        self._thread = threading.Thread(target=_loop, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        self.clear()


def _resolve_progress(
    show_progress: bool | None,
    idle_seconds: float | None,
    style: str | None,
    interval: float | None,
) -> tuple[bool, float, str, float]:
    # 우선순위: 호출 인자 > env > 전역 기본값
    default_show, default_idle, default_style, default_interval = _get_progress_defaults()
    env_show = _parse_env_bool("CLI_SHOW_PROGRESS")
    env_idle = _parse_env_float("CLI_PROGRESS_IDLE_SECONDS")
    env_style = os.getenv("CLI_PROGRESS_STYLE")
    env_interval = _parse_env_float("CLI_PROGRESS_INTERVAL_SECONDS")

    def pick(arg, env_value, default):  # noqa: ANN001, ANN202
        if arg is not None:
            return arg
        if env_value is not None:
            return env_value
        return default

    return (
        bool(pick(show_progress, env_show, default_show)),
        float(pick(idle_seconds, env_idle, default_idle)),
        str(pick(style, env_style, default_style)),
        float(pick(interval, env_interval, default_interval)),
    )


def run_command(
    cmd: Sequence[str],
    *,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = 900.0,
    stream_output: bool = False,
    spinner_message: str | None = None,
    show_progress: bool | None = None,
    progress_idle_seconds: float | None = None,
    progress_style: str | None = None,
    progress_interval: float | None = None,
) -> RunResult:
    """
    gcloud/docker 실행 공통 유틸.

    - stream_output=False: stdout/stderr 캡처, 실패 시 발췌를 CommandError 에 담는다.
    - stream_output=True : 출력을 실시간으로 터미널에 흘린다 (docker build/push 등).
    """
    logger.info("명령 실행: %s", " ".join(cmd))

    show, idle, style, interval = _resolve_progress(
        show_progress, progress_idle_seconds, progress_style, progress_interval
    )
    message = spinner_message or shorten(" ".join(cmd), width=72, placeholder="…")

    indicator: Optional[_IdleProgressIndicator] = None
    if show and _is_tty(sys.stderr):
        indicator = _IdleProgressIndicator(
            message=message,
            stream=sys.stderr,
            style=style,
            interval=interval,
            idle_seconds=idle,
        )

    if stream_output:
        return _run_streaming(cmd, cwd=cwd, env=env, timeout=timeout, indicator=indicator)
    return _run_captured(cmd, cwd=cwd, env=env, timeout=timeout, indicator=indicator)


def _run_captured(
    cmd: Sequence[str],
    *,
    cwd: str | None,
    env: Mapping[str, str] | None,
    timeout: float | None,
    indicator: Optional[_IdleProgressIndicator],
) -> RunResult:
    started = time.monotonic()
    if indicator is not None:
        # 캡처 모드에서는 출력이 보이지 않으므로 시작 시각을 마지막 활동으로 본다.
        indicator.start(start_time=started, last_activity_getter=lambda: started)

    try:
        result = subprocess.run(  # noqa: S603
            list(cmd),
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
            env=dict(env) if env is not None else None,
        )
    except FileNotFoundError as e:
        raise CommandNotFoundError(cmd) from e
    except subprocess.TimeoutExpired as e:
        raise CommandTimeoutError(cmd, timeout) from e
    finally:
        if indicator is not None:
            indicator.stop()

    stdout = result.stdout or ""
    stderr = result.stderr or ""
    if stdout:
        logger.debug("명령 stdout: %s", shorten(stdout.strip(), width=_EXCERPT_WIDTH))
    if stderr:
        logger.debug("명령 stderr: %s", shorten(stderr.strip(), width=_EXCERPT_WIDTH))

    if result.returncode != 0:
        # gcloud 는 대부분의 오류를 stderr 로 낸다.
        raise CommandError(cmd, result.returncode, stderr.strip() or stdout.strip())

    return RunResult(returncode=result.returncode, stdout=stdout, stderr=stderr)


def _run_streaming(
    cmd: Sequence[str],
    *,
    cwd: str | None,
    env: Mapping[str, str] | None,
    timeout: float | None,
    indicator: Optional[_IdleProgressIndicator],
) -> RunResult:
    try:
        # gcloud/docker 는 진행 로그를 stderr 로 내보내므로 STDOUT 으로 합친다.
        proc = subprocess.Popen(  # noqa: S603
            list(cmd),
            cwd=cwd,
            env=dict(env) if env is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
        )
    except FileNotFoundError as e:
        raise CommandNotFoundError(cmd) from e

    out_lines: list[str] = []
    started = time.monotonic()
    deadline = None if timeout is None else started + float(timeout)

    activity_lock = threading.Lock()
    last_activity = started

    def _get_last_activity() -> float:
        with activity_lock:
            return last_activity

    def _touch_activity() -> None:
        nonlocal last_activity
        with activity_lock:
            last_activity = time.monotonic()

    if indicator is not None:
        indicator.start(start_time=started, last_activity_getter=_get_last_activity)

    lines: queue.Queue[str | None] = queue.Queue()

    def _reader() -> None:
        try:
            assert proc.stdout is not None
            for line in proc.stdout:
                lines.put(line)
        finally:
            lines.put(None)

    reader_thread = threading.Thread(target=_reader, daemon=True)
    reader_thread.start()

    try:
        while True:
            now = time.monotonic()
            if deadline is not None and now >= deadline:
                proc.kill()
                proc.wait()
                raise CommandTimeoutError(cmd, timeout)

            get_timeout = 0.1 if deadline is None else min(0.1, max(deadline - now, 0.0))
            try:
                item = lines.get(timeout=get_timeout)
            except queue.Empty:
                if proc.poll() is not None:
                    try:
                        item = lines.get(timeout=0.2)
                    except queue.Empty:
                        break
                else:
                    continue

            if item is None:
                break

            if indicator is not None:
                indicator.clear()
            out_lines.append(item)
            sys.stdout.write(item)
            sys.stdout.flush()
            _touch_activity()

        reader_thread.join(timeout=1.0)
        wait_timeout = None if deadline is None else max(deadline - time.monotonic(), 0.0)
        returncode = proc.wait(timeout=wait_timeout)
    except subprocess.TimeoutExpired as e:
        proc.kill()
        proc.wait()
        raise CommandTimeoutError(cmd, timeout) from e
    finally:
        if proc.stdout is not None:
            proc.stdout.close()
        if indicator is not None:
            indicator.stop()

    output = "".join(out_lines)
    if returncode != 0:
        raise CommandError(cmd, returncode, output)

    return RunResult(returncode=returncode, stdout=output, stderr="")
