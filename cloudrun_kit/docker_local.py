"""
docker_local
------------

배포 전에 빌드한 이미지를 로컬에서 띄워 보는 용도.
"""

from __future__ import annotations

from typing import Optional

from .config import DeployConfig
from .logging_utils import get_logger
from .subprocess_utils import RunResult, run_command


logger = get_logger(__name__)


def _run(cmd: list[str], **kwargs) -> RunResult:  # noqa: ANN003
    return run_command(cmd, **kwargs)


def run_command_line(cfg: DeployConfig, host_port: Optional[int] = None, detach: bool = False) -> list[str]:
    # Cloud Run 과 같은 방식으로 PORT 를 주입한다.
    published = host_port or cfg.port
    cmd = ["docker", "run", "--rm"]
    if detach:
        cmd.append("-d")
    if cfg.docker_platform:
        cmd.append(f"--platform={cfg.docker_platform}")
    cmd += [
        "-p",
        f"{published}:{cfg.port}",
        "-e",
        f"PORT={cfg.port}",
        cfg.image_url,
    ]
    return cmd


def run_local(cfg: DeployConfig, host_port: Optional[int] = None, detach: bool = False) -> str:
    """
    로컬에서 컨테이너를 실행한다. detach=False 면 Ctrl+C 까지 출력을 흘린다.

    Returns:
        브라우저로 접속할 로컬 URL
    """
    published = host_port or cfg.port
    url = f"http://localhost:{published}"
    logger.info("로컬 컨테이너 실행: %s -> %s", cfg.image_url, url)
    _run(
        run_command_line(cfg, host_port=host_port, detach=detach),
        stream_output=not detach,
        timeout=None,
        show_progress=False,
    )
    return url
