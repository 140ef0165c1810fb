from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv


ENV_FILES_DEFAULT_ORDER = [".env", ".env.deploy"]

BUILD_MODES = ("local_docker", "cloud_build")

DEFAULT_ARTIFACT_REPO = "cloud-run-source-deploy"
DEFAULT_SERVICE_NAME = "streamlit-demo"
DEFAULT_PORT = 8080

# Cloud Run 서비스 이름 규칙: 소문자로 시작, 소문자/숫자/하이픈, 최대 49자, 하이픈으로 끝나지 않음
_SERVICE_NAME_RE = re.compile(r"^[a-z]([-a-z0-9]{0,47}[a-z0-9])?$")


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다.
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_str(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


@dataclass
class DeployConfig:
    # 필수 공통
    project_id: str
    region: str

    # 이미지 / 서비스
    artifact_repo: str = DEFAULT_ARTIFACT_REPO
    service_name: str = DEFAULT_SERVICE_NAME
    image_name: Optional[str] = None
    image_tag: str = "latest"
    source_dir: str = "."
    port: int = DEFAULT_PORT

    # 빌드
    build_mode: str = "local_docker"
    docker_platform: Optional[str] = "linux/amd64"

    # Cloud Run 옵션
    allow_unauthenticated: bool = True
    memory: Optional[str] = None
    cpu: Optional[str] = None
    max_instances: Optional[int] = None

    # 결제 계정이 없어서 API enable 이 실패할 때 자동 연결에 사용
    billing_account_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.image_name:
            self.image_name = self.service_name

    @property
    def registry_host(self) -> str:
        return f"{self.region}-docker.pkg.dev"

    @property
    def image_url(self) -> str:
        return (
            f"{self.registry_host}/{self.project_id}/{self.artifact_repo}/"
            f"{self.image_name}:{self.image_tag}"
        )

    @classmethod
    def from_env(cls) -> "DeployConfig":
        missing: List[str] = []
        errors: List[str] = []

        def req(name: str) -> str:
            val = _get_str(name)
            if not val:
                missing.append(name)
            return val or ""

        project_id = req("PROJECT_ID")
        region = req("REGION")

        if missing:
            raise ValueError(
                "필수 환경변수가 누락되었습니다: " + ", ".join(sorted(set(missing)))
            )

        service_name = _get_str("SERVICE_NAME", DEFAULT_SERVICE_NAME) or DEFAULT_SERVICE_NAME
        if not _SERVICE_NAME_RE.match(service_name):
            errors.append(
                f"SERVICE_NAME={service_name!r} 은(는) Cloud Run 서비스 이름으로 사용할 수 없습니다 "
                "(소문자로 시작, 소문자/숫자/하이픈, 최대 49자)"
            )

        build_mode = (_get_str("BUILD_MODE", "local_docker") or "local_docker").lower()
        if build_mode not in BUILD_MODES:
            errors.append(
                f"알 수 없는 BUILD_MODE 값입니다: {build_mode!r} ({' | '.join(BUILD_MODES)} 중 하나)"
            )

        port = DEFAULT_PORT
        raw_port = _get_str("CONTAINER_PORT")
        if raw_port is not None:
            try:
                port = int(raw_port)
            except ValueError:
                errors.append(f"CONTAINER_PORT 는 정수여야 합니다: {raw_port!r}")
            else:
                if not 1 <= port <= 65535:
                    errors.append(f"CONTAINER_PORT 범위를 벗어났습니다: {port}")

        max_instances: Optional[int] = None
        raw_max = _get_str("MAX_INSTANCES")
        if raw_max is not None:
            try:
                max_instances = int(raw_max)
            except ValueError:
                errors.append(f"MAX_INSTANCES 는 정수여야 합니다: {raw_max!r}")

        if errors:
            raise ValueError("설정 오류:\n- " + "\n- ".join(errors))

        # DOCKER_PLATFORM= (빈 값) 이면 --platform 을 붙이지 않는다.
        platform = os.getenv("DOCKER_PLATFORM")
        docker_platform = "linux/amd64" if platform is None else (platform.strip() or None)

        return cls(
            project_id=project_id,
            region=region,
            artifact_repo=_get_str("ARTIFACT_REPO", DEFAULT_ARTIFACT_REPO) or DEFAULT_ARTIFACT_REPO,
            service_name=service_name,
            image_name=_get_str("IMAGE_NAME"),
            image_tag=_get_str("IMAGE_TAG", "latest") or "latest",
            source_dir=_get_str("SOURCE_DIR", ".") or ".",
            port=port,
            build_mode=build_mode,
            docker_platform=docker_platform,
            allow_unauthenticated=_get_bool("ALLOW_UNAUTHENTICATED", True),
            memory=_get_str("MEMORY"),
            cpu=_get_str("CPU"),
            max_instances=max_instances,
            billing_account_id=_get_str("BILLING_ACCOUNT_ID"),
        )
