"""
gcp_cloud_run
-------------

Cloud Run 서비스 배포 및 URL 조회를 담당하는 모듈.
"""

from __future__ import annotations

from typing import Optional

from .checks import CheckItem, CRITICAL, OK, WARNING
from .config import DeployConfig
from .logging_utils import get_logger
from .subprocess_utils import CommandError, CommandNotFoundError, RunResult, run_command


logger = get_logger(__name__)


def _run(cmd: list[str], **kwargs) -> RunResult:  # noqa: ANN003
    return run_command(cmd, **kwargs)


def deploy_command(cfg: DeployConfig, image_url: str) -> list[str]:
    cmd = [
        "gcloud",
        "run",
        "deploy",
        cfg.service_name,
        f"--image={image_url}",
        f"--region={cfg.region}",
        "--platform=managed",
        f"--port={cfg.port}",
    ]
    if cfg.allow_unauthenticated:
        cmd.append("--allow-unauthenticated")
    else:
        cmd.append("--no-allow-unauthenticated")
    if cfg.memory:
        cmd.append(f"--memory={cfg.memory}")
    if cfg.cpu:
        cmd.append(f"--cpu={cfg.cpu}")
    if cfg.max_instances is not None:
        cmd.append(f"--max-instances={cfg.max_instances}")
    cmd += [f"--project={cfg.project_id}", "--quiet"]
    return cmd


def _describe_cmd(cfg: DeployConfig) -> list[str]:
    return [
        "gcloud",
        "run",
        "services",
        "describe",
        cfg.service_name,
        f"--region={cfg.region}",
        f"--project={cfg.project_id}",
        "--format=value(status.url)",
        "--quiet",
    ]


def service_url(cfg: DeployConfig) -> Optional[str]:
    result = _run(_describe_cmd(cfg), timeout=60.0)
    url = result.stdout.strip()
    return url or None


def deploy_service(cfg: DeployConfig, image_url: str) -> Optional[str]:
    """
    Cloud Run 서비스를 배포(없으면 생성, 있으면 새 리비전)하고 서비스 URL 을 반환한다.
    """
    logger.info("Cloud Run 서비스 배포: service=%s image=%s", cfg.service_name, image_url)
    _run(
        deploy_command(cfg, image_url),
        stream_output=True,
        timeout=900.0,
        spinner_message=f"Cloud Run 배포 중 ({cfg.service_name})",
    )
    url = service_url(cfg)
    if url:
        logger.info("서비스 URL: %s", url)
    else:
        logger.warning("배포는 끝났지만 서비스 URL 을 가져오지 못했습니다: %s", cfg.service_name)
    return url


def check_service(cfg: DeployConfig) -> CheckItem:
    try:
        url = service_url(cfg)
    except CommandNotFoundError:
        return CheckItem("Cloud Run", CRITICAL, "gcloud 명령을 찾을 수 없어 상태 확인 불가")
    except CommandError:
        return CheckItem("Cloud Run", WARNING, f"서비스 없음 (배포 시 생성 예정) ({cfg.service_name})")
    if not url:
        return CheckItem("Cloud Run", WARNING, f"서비스는 있으나 URL 없음 ({cfg.service_name})")
    return CheckItem("Cloud Run", OK, f"배포됨 ({cfg.service_name} -> {url})")
