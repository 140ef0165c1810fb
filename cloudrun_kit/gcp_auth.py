"""
gcp_auth
--------

gcloud 로그인 상태 확인, 기본 프로젝트 설정,
Artifact Registry 용 docker 인증 헬퍼 설정을 담당한다.
"""

from __future__ import annotations

from typing import Optional

from .checks import CheckItem, CRITICAL, OK
from .config import DeployConfig
from .errors import NotAuthenticatedError
from .logging_utils import get_logger
from .subprocess_utils import CommandError, RunResult, run_command


logger = get_logger(__name__)


def _run(cmd: list[str], **kwargs) -> RunResult:  # noqa: ANN003
    return run_command(cmd, **kwargs)


def active_account() -> Optional[str]:
    """
    현재 활성화된 gcloud 계정 이메일. 로그인되어 있지 않으면 None.
    """
    result = _run(
        [
            "gcloud",
            "auth",
            "list",
            "--filter=status:ACTIVE",
            "--format=value(account)",
        ],
        timeout=60.0,
    )
    account = result.stdout.strip().splitlines()
    return account[0].strip() if account else None


def ensure_authenticated(cfg: DeployConfig, interactive: bool = False) -> str:
    """
    활성 계정이 있는지 확인한다.

    interactive=True 이면 `gcloud auth login` 을 띄워 브라우저 로그인을 진행하고,
    아니면 NotAuthenticatedError 를 던진다.
    """
    account = active_account()
    if account:
        logger.info("gcloud 활성 계정: %s", account)
        return account

    if not interactive:
        raise NotAuthenticatedError()

    logger.info("활성 계정이 없어 gcloud auth login 을 실행합니다.")
    _run(["gcloud", "auth", "login"], stream_output=True, timeout=None)
    account = active_account()
    if not account:
        raise NotAuthenticatedError()
    logger.info("로그인 완료: %s", account)
    return account


def set_project(cfg: DeployConfig) -> None:
    logger.info("gcloud 기본 프로젝트 설정: %s", cfg.project_id)
    _run(["gcloud", "config", "set", "project", cfg.project_id], timeout=60.0)


def configure_docker(cfg: DeployConfig) -> None:
    """
    docker push 가 {region}-docker.pkg.dev 에 인증할 수 있도록
    gcloud credential helper 를 등록한다.
    """
    logger.info("docker 인증 헬퍼 등록: %s", cfg.registry_host)
    _run(
        ["gcloud", "auth", "configure-docker", cfg.registry_host, "--quiet"],
        timeout=120.0,
    )


def check_auth() -> CheckItem:
    try:
        account = active_account()
    except CommandError as e:
        return CheckItem("Auth", CRITICAL, f"gcloud 계정 상태 확인 불가 ({e.__class__.__name__})")
    if not account:
        return CheckItem("Auth", CRITICAL, "활성 계정 없음 (`gcloud auth login` 필요)")
    return CheckItem("Auth", OK, f"활성 계정 ({account})")
