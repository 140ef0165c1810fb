"""
gcp_artifact_registry
---------------------

Artifact Registry 리포지토리 존재 여부 확인 및
이미지 빌드/푸시를 담당하는 모듈.
"""

from __future__ import annotations

from .checks import CheckItem, CRITICAL, OK, WARNING
from .config import DeployConfig
from .logging_utils import get_logger
from .subprocess_utils import CommandError, CommandNotFoundError, RunResult, run_command


logger = get_logger(__name__)


def _run(cmd: list[str], **kwargs) -> RunResult:  # noqa: ANN003
    return run_command(cmd, **kwargs)


def _describe_cmd(cfg: DeployConfig) -> list[str]:
    return [
        "gcloud",
        "artifacts",
        "repositories",
        "describe",
        cfg.artifact_repo,
        f"--location={cfg.region}",
        f"--project={cfg.project_id}",
        "--quiet",
    ]


def ensure_repository(cfg: DeployConfig) -> bool:
    """
    Artifact Registry 리포가 존재하는지 확인하고, 없으면 생성한다.

    Returns:
        새로 생성했으면 True
    """
    repo = cfg.artifact_repo
    logger.info("Artifact Registry 리포 확인: %s (%s)", repo, cfg.region)

    try:
        _run(_describe_cmd(cfg), timeout=60.0)
        logger.info("기존 Artifact Registry 리포를 사용합니다: %s", repo)
        return False
    except CommandNotFoundError:
        raise
    except CommandError as e:
        # describe 실패 시에만 create 시도 (권한 문제일 수도 있으므로 로그 남김)
        logger.warning("리포지토리 조회 실패, 생성 시도: %s", e)

    _run(
        [
            "gcloud",
            "artifacts",
            "repositories",
            "create",
            repo,
            "--repository-format=docker",
            f"--location={cfg.region}",
            f"--project={cfg.project_id}",
            f"--description=Container images for {cfg.service_name}",
            "--quiet",
        ],
        timeout=300.0,
        spinner_message="Artifact Registry 리포 생성 중",
    )
    logger.info("Artifact Registry 리포를 생성했습니다: %s", repo)
    return True


def build_image(cfg: DeployConfig) -> str:
    """
    로컬 docker 로 이미지를 빌드한다. Cloud Run 은 linux/amd64 이미지만 실행하므로
    Apple Silicon 등에서는 --platform 이 필요하다.
    """
    image_url = cfg.image_url
    cmd = ["docker", "build"]
    if cfg.docker_platform:
        cmd.append(f"--platform={cfg.docker_platform}")
    cmd += ["-t", image_url, cfg.source_dir]
    _run(cmd, stream_output=True, timeout=1800.0, spinner_message=f"이미지 빌드 중 ({cfg.image_name})")
    return image_url


def push_image(cfg: DeployConfig) -> str:
    image_url = cfg.image_url
    _run(
        ["docker", "push", image_url],
        stream_output=True,
        timeout=1800.0,
        spinner_message=f"이미지 푸시 중 ({cfg.image_name})",
    )
    return image_url


def build_and_push_image(cfg: DeployConfig) -> str:
    """
    이미지를 빌드하고 Artifact Registry 에 푸시한 뒤, 최종 이미지 URL 을 반환한다.

    빌드 방식은 cfg.build_mode 에 따라 동작한다.
    - local_docker: docker build + docker push
    - cloud_build : gcloud builds submit --tag (로컬 docker 불필요)
    """
    mode = cfg.build_mode
    logger.info("이미지 빌드 모드: %s", mode)

    if mode == "local_docker":
        build_image(cfg)
        push_image(cfg)
    elif mode == "cloud_build":
        _run(
            [
                "gcloud",
                "builds",
                "submit",
                cfg.source_dir,
                f"--tag={cfg.image_url}",
                f"--region={cfg.region}",
                f"--project={cfg.project_id}",
                "--quiet",
            ],
            stream_output=True,
            timeout=1800.0,
            spinner_message=f"Cloud Build 진행 중 ({cfg.image_name})",
        )
    else:
        raise ValueError(
            f"알 수 없는 BUILD_MODE 값입니다: {mode!r} (local_docker | cloud_build 중 하나)"
        )

    logger.info("이미지 빌드/푸시 완료: %s", cfg.image_url)
    return cfg.image_url


def check_repository(cfg: DeployConfig) -> CheckItem:
    """
    Artifact Registry 리포지토리 존재 여부를 확인만 하고, 생성하지 않는다.
    """
    repo = cfg.artifact_repo
    try:
        _run(_describe_cmd(cfg), timeout=60.0)
        return CheckItem("Artifact Registry", OK, f"리포지토리 존재함 ({repo})")
    except CommandNotFoundError:
        return CheckItem("Artifact Registry", CRITICAL, "gcloud 명령을 찾을 수 없어 상태 확인 불가")
    except CommandError:
        return CheckItem("Artifact Registry", WARNING, f"리포지토리 없음 (배포 시 생성 예정) ({repo})")
