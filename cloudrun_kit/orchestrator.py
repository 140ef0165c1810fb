from __future__ import annotations

import os
import re
import shlex
from typing import Iterable, List, Optional

from .checks import CheckItem, CRITICAL, OK, WARNING
from .config import DeployConfig
from .logging_utils import get_logger
from . import (
    gcp_auth,
    gcp_project,
    gcp_artifact_registry,
    gcp_cloud_run,
)
from .subprocess_utils import command_exists


logger = get_logger(__name__)

# 배포 단계. 앞 단계가 끝나야 다음 단계가 의미가 있는 선형 체크리스트다.
ALL_STEPS: List[str] = [
    "auth",
    "apis",
    "registry",
    "build",
    "deploy",
]


def _filter_steps(only_steps: Optional[Iterable[str]]) -> List[str]:
    if only_steps:
        requested = set(only_steps)
        return [s for s in ALL_STEPS if s in requested]
    return list(ALL_STEPS)


def step_commands(cfg: DeployConfig, step: str) -> List[List[str]]:
    """
    각 단계가 실행할 (대표) 명령 목록. plan 출력용이며 실제 실행은 각 모듈이 담당한다.
    """
    if step == "auth":
        return [
            ["gcloud", "auth", "list", "--filter=status:ACTIVE", "--format=value(account)"],
            ["gcloud", "config", "set", "project", cfg.project_id],
        ]
    if step == "apis":
        return [
            ["gcloud", "services", "enable", *gcp_project.required_apis(cfg), f"--project={cfg.project_id}"],
        ]
    if step == "registry":
        cmds = [
            [
                "gcloud",
                "artifacts",
                "repositories",
                "create",
                cfg.artifact_repo,
                "--repository-format=docker",
                f"--location={cfg.region}",
            ],
        ]
        if cfg.build_mode == "local_docker":
            cmds.append(["gcloud", "auth", "configure-docker", cfg.registry_host, "--quiet"])
        return cmds
    if step == "build":
        if cfg.build_mode == "cloud_build":
            return [["gcloud", "builds", "submit", cfg.source_dir, f"--tag={cfg.image_url}"]]
        build = ["docker", "build"]
        if cfg.docker_platform:
            build.append(f"--platform={cfg.docker_platform}")
        build += ["-t", cfg.image_url, cfg.source_dir]
        return [build, ["docker", "push", cfg.image_url]]
    if step == "deploy":
        return [gcp_cloud_run.deploy_command(cfg, cfg.image_url)]
    raise ValueError(f"알 수 없는 단계입니다: {step!r}")


def plan_all(cfg: DeployConfig) -> str:
    """
    현재 설정과 단계별로 실행될 명령을 요약한다. 실제 GCP 호출은 하지 않는다.
    """
    lines: List[str] = []
    lines.append("# Deploy plan")
    lines.append(f"- project: {cfg.project_id}")
    lines.append(f"- region: {cfg.region}")
    lines.append("")

    lines.append("## Config summary")
    lines.append(f"- service_name: {cfg.service_name}")
    lines.append(f"- image_url: {cfg.image_url}")
    lines.append(f"- source_dir: {cfg.source_dir}")
    lines.append(f"- port: {cfg.port}")
    lines.append(f"- build_mode: {cfg.build_mode}")
    lines.append(f"- docker_platform: {cfg.docker_platform or '(default)'}")
    lines.append(f"- allow_unauthenticated: {cfg.allow_unauthenticated}")
    lines.append(f"- billing_account_id: {cfg.billing_account_id or '(not set)'}")
    lines.append("")

    lines.append("## Steps")
    for step in ALL_STEPS:
        lines.append(f"### {step}")
        for cmd in step_commands(cfg, step):
            lines.append(f"    $ {shlex.join(cmd)}")

    return "\n".join(lines)


def _run_step(step: str, cfg: DeployConfig, interactive: bool) -> Optional[str]:
    """단계 하나를 실행한다. deploy 단계만 서비스 URL 을 반환한다."""
    if step == "auth":
        gcp_auth.ensure_authenticated(cfg, interactive=interactive)
        gcp_auth.set_project(cfg)
    elif step == "apis":
        gcp_project.enable_apis(cfg)
    elif step == "registry":
        gcp_artifact_registry.ensure_repository(cfg)
        if cfg.build_mode == "local_docker":
            gcp_auth.configure_docker(cfg)
    elif step == "build":
        gcp_artifact_registry.build_and_push_image(cfg)
    elif step == "deploy":
        return gcp_cloud_run.deploy_service(cfg, cfg.image_url)
    return None


def _section(lines: List[str], title: str, items: List[str]) -> None:
    lines.append("")
    lines.append(f"## {title}")
    if items:
        for s in items:
            lines.append(f"- {s}")
    else:
        lines.append("- (none)")


def apply_all(
    cfg: DeployConfig,
    only_steps: Optional[Iterable[str]] = None,
    interactive: bool = False,
) -> tuple[str, bool]:
    """
    단계를 순서대로 실행한다. 한 단계가 실패하면 이후 단계는 blocked 로 남기고 멈춘다.

    Returns:
        summary: 사람이 읽기 좋은 텍스트 요약
        has_failures: 실패한 단계가 있는지 여부
    """
    executed: List[str] = []
    skipped: List[str] = []
    failed: List[str] = []
    blocked: List[str] = []
    errors: List[str] = []
    url: Optional[str] = None

    steps = _filter_steps(only_steps)
    logger.info("실행 대상 단계: %s", steps)

    for name in ALL_STEPS:
        if name not in steps:
            skipped.append(name)
            continue
        if failed:
            blocked.append(name)
            continue

        logger.info("단계 실행: %s", name)
        try:
            result = _run_step(name, cfg, interactive)
        except Exception as e:  # noqa: BLE001
            failed.append(name)
            errors.append(f"{name}: {e}")
            logger.exception("단계 실행 실패: %s", name)
            continue

        if result:
            url = result
        executed.append(name)

    lines: List[str] = []
    lines.append("# Deploy summary")
    lines.append(f"- project: {cfg.project_id}")
    lines.append(f"- service: {cfg.service_name}")
    lines.append(f"- image: {cfg.image_url}")
    if url:
        lines.append(f"- url: {url}")

    _section(lines, "Executed steps", executed)
    _section(lines, "Skipped steps", skipped)
    _section(lines, "Failed steps", failed)
    _section(lines, "Blocked steps", blocked)

    if errors:
        lines.append("")
        lines.append("## Errors")
        for err in errors:
            lines.append(err)

    return "\n".join(lines), bool(failed)


def _check_tools(cfg: DeployConfig) -> List[CheckItem]:
    tools = ["gcloud"]
    if cfg.build_mode == "local_docker":
        tools.append("docker")
    results: List[CheckItem] = []
    for tool in tools:
        if command_exists(tool):
            results.append(CheckItem("Tools", OK, f"{tool} 설치됨"))
        else:
            results.append(CheckItem("Tools", CRITICAL, f"{tool} 를 PATH 에서 찾을 수 없음"))
    return results


_EXPOSE_RE = re.compile(r"^\s*EXPOSE\s+(.+)$", re.IGNORECASE | re.MULTILINE)


def exposed_ports(dockerfile_text: str) -> List[int]:
    """Dockerfile 의 EXPOSE 지시어에 적힌 포트 목록 (`8080/tcp` 형식 포함)."""
    ports: List[int] = []
    for match in _EXPOSE_RE.finditer(dockerfile_text):
        for token in match.group(1).split():
            port = token.split("/", 1)[0]
            if port.isdigit():
                ports.append(int(port))
    return ports


def _check_dockerfile(cfg: DeployConfig) -> List[CheckItem]:
    # source_dir 는 CLI 에서 이미 -C 기준으로 해석되어 들어온다.
    source_dir = cfg.source_dir
    if not os.path.isdir(source_dir):
        return [CheckItem("Source", CRITICAL, f"SOURCE_DIR 디렉토리가 없음 ({source_dir})")]
    dockerfile = os.path.join(source_dir, "Dockerfile")
    if not os.path.exists(dockerfile):
        return [
            CheckItem(
                "Source",
                CRITICAL,
                f"Dockerfile 없음 ({source_dir}) - `cloudrun-kit init` 으로 생성할 수 있습니다",
            )
        ]

    results = [CheckItem("Source", OK, f"Dockerfile 존재함 ({source_dir})")]

    with open(dockerfile, encoding="utf-8") as f:
        ports = exposed_ports(f.read())
    if not ports:
        results.append(
            CheckItem("Source", WARNING, f"Dockerfile 에 EXPOSE 가 없음 (CONTAINER_PORT={cfg.port} 로 리슨해야 함)")
        )
    elif cfg.port not in ports:
        # Cloud Run 은 --port 로 지정한 포트로 startup probe 를 보낸다.
        results.append(
            CheckItem(
                "Source",
                CRITICAL,
                f"CONTAINER_PORT={cfg.port} 가 Dockerfile EXPOSE {ports} 와 다름 "
                "(`cloudrun-kit init --force` 로 다시 생성하거나 값을 맞추세요)",
            )
        )
    else:
        results.append(CheckItem("Source", OK, f"포트 일치 ({cfg.port})"))
    return results


def check_all(cfg: DeployConfig, show_all: bool = False) -> tuple[str, bool]:
    """
    실제 리소스 생성 없이, 현재 설정과 GCP 리소스 상태를 종합적으로 점검한다.

    Returns:
        summary: 사람이 읽기 좋은 텍스트 요약
        has_issues: 배포 전에 사람이 해결해야 하는 크리티컬 이슈가 있는지 여부
    """
    items: List[CheckItem] = []
    items += _check_tools(cfg)
    items += _check_dockerfile(cfg)

    gcloud_ok = command_exists("gcloud")
    if gcloud_ok:
        checks = [
            ("Auth", lambda: [gcp_auth.check_auth()]),
            ("Project", lambda: gcp_project.check_project_and_apis(cfg)),
            ("Artifact Registry", lambda: [gcp_artifact_registry.check_repository(cfg)]),
            ("Cloud Run", lambda: [gcp_cloud_run.check_service(cfg)]),
        ]
        for area, fn in checks:
            try:
                items += fn()
            except Exception as e:  # noqa: BLE001
                items.append(CheckItem(area, CRITICAL, f"체크 중 예외 발생: {e}"))

    critical = [i for i in items if i.level == CRITICAL]
    warnings = [i for i in items if i.level == WARNING]

    lines: List[str] = []
    lines.append("# Deploy pre-check")
    lines.append(f"- project: {cfg.project_id}")
    lines.append(f"- region: {cfg.region}")
    lines.append(f"- image: {cfg.image_url}")

    if show_all:
        lines.append("")
        lines.append("## Details")
        for i in items:
            lines.append(f"- [{i.level.upper()}] {i}")

    lines.append("")
    lines.append("## Summary")
    if critical:
        lines.append("- 상태: 크리티컬 이슈가 있습니다. 배포 전 반드시 해결해야 합니다.")
    elif warnings:
        lines.append("- 상태: 경고만 있습니다. 배포 시 일부 리소스가 새로 생성/활성화됩니다.")
    else:
        lines.append("- 상태: 주요 이슈 없음 (배포 가능 상태로 보입니다)")

    if show_all or critical:
        _section(lines, "Critical issues", [str(i) for i in critical])
    if show_all or warnings:
        _section(lines, "Warnings", [str(i) for i in warnings])

    if not show_all:
        lines.append("")
        lines.append("자세한 상태를 보려면 `cloudrun-kit check -a` 를 실행하세요.")

    return "\n".join(lines), bool(critical)
