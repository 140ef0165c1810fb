import os
import sys
from typing import Optional

import click

from .config import load_env_files, DeployConfig, DEFAULT_PORT
from .logging_utils import setup_logging, get_logger
from .orchestrator import ALL_STEPS, apply_all, plan_all, check_all
from . import docker_local, gcp_artifact_registry, gcp_cloud_run, templates


logger = get_logger(__name__)


@click.group()
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help="작업 디렉토리 (.env / .env.deploy 를 찾는 위치, 기본: 현재 디렉토리)",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다. (gcloud/docker 캡처 출력 포함)",
)
@click.option("-q", "--quiet", is_flag=True, help="경고 이상의 로그만 출력합니다.")
@click.pass_context
def main(ctx: click.Context, chdir: str, verbose: int, quiet: bool) -> None:
    """Streamlit 앱을 컨테이너로 빌드해 Cloud Run 에 배포하는 CLI"""
    setup_logging(verbose, quiet=quiet)
    ctx.ensure_object(dict)
    ctx.obj["chdir"] = chdir
    ctx.obj["verbose"] = verbose


def _load_config_from_ctx(ctx: click.Context) -> DeployConfig:
    base_dir: str = ctx.obj["chdir"]
    load_env_files(base_dir)
    try:
        cfg = DeployConfig.from_env()
    except ValueError as e:
        click.echo(f"[ERROR] 설정 로드 실패: {e}", err=True)
        sys.exit(1)

    # 상대 경로 SOURCE_DIR 은 -C 기준으로 해석한다.
    if not os.path.isabs(cfg.source_dir):
        cfg.source_dir = os.path.normpath(os.path.join(base_dir, cfg.source_dir))
    logger.debug("Config loaded: %s", cfg)
    return cfg


def _container_port_from_env() -> int:
    # init 은 PROJECT_ID 없이도 동작해야 하므로 DeployConfig 대신 포트만 읽는다.
    raw = (os.getenv("CONTAINER_PORT") or "").strip()
    if not raw:
        return DEFAULT_PORT
    try:
        return int(raw)
    except ValueError:
        click.echo(f"[ERROR] CONTAINER_PORT 는 정수여야 합니다: {raw!r}", err=True)
        sys.exit(1)


@main.command()
@click.option(
    "--dir",
    "target_dir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=None,
    help="템플릿을 생성할 디렉토리 (기본: -C 로 지정한 작업 디렉토리)",
)
@click.option(
    "--port",
    type=int,
    default=None,
    help="Dockerfile 에 넣을 컨테이너 포트 (기본: CONTAINER_PORT, 없으면 8080)",
)
@click.option("--force", is_flag=True, help="이미 있는 파일도 덮어씁니다.")
@click.pass_context
def init(ctx: click.Context, target_dir: Optional[str], port: Optional[int], force: bool) -> None:
    """
    Dockerfile, .dockerignore, .env.deploy.example 템플릿을 생성한다.

    EXPOSE / --server.port 는 deploy 가 Cloud Run 에 넘기는 CONTAINER_PORT 와 같아야 한다.
    """
    target = target_dir or ctx.obj["chdir"]
    if port is None:
        load_env_files(ctx.obj["chdir"])
        port = _container_port_from_env()
    for filename, created in templates.write_templates(target, port=port, force=force):
        if created:
            click.echo(f"{filename} 템플릿을 생성했습니다.")
        else:
            click.echo(f"{filename} 이(가) 이미 존재하여 건너뜀 (--force 로 덮어쓰기)")


@main.command()
@click.pass_context
def plan(ctx: click.Context) -> None:
    """현재 설정과 단계별로 실행될 gcloud/docker 명령을 출력"""
    cfg = _load_config_from_ctx(ctx)
    click.echo(plan_all(cfg))


@main.command()
@click.option(
    "-a",
    "--all",
    "show_all",
    is_flag=True,
    help="모든 체크 항목의 상세 상태를 출력합니다. (기본은 이슈만 요약)",
)
@click.pass_context
def check(ctx: click.Context, show_all: bool) -> None:
    """
    배포 전에 도구 설치, 로그인, 프로젝트/결제/API, 리포지토리 상태를 점검한다.
    (실제 리소스 생성/변경은 하지 않는다)
    """
    cfg = _load_config_from_ctx(ctx)

    report, has_issues = check_all(cfg, show_all=show_all)
    click.echo(report)

    # 크리티컬 이슈가 있으면 exit 1 로 종료하여 CI 등에서 감지 가능하게 한다.
    if has_issues:
        sys.exit(1)


@main.command(name="deploy")
@click.option(
    "--only",
    "only",
    type=str,
    default="",
    help=f"쉼표로 구분된 단계 이름({','.join(ALL_STEPS)}). 기본은 전체 단계.",
)
@click.option(
    "--interactive",
    is_flag=True,
    help="로그인되어 있지 않으면 gcloud auth login 을 실행합니다.",
)
@click.pass_context
def deploy(ctx: click.Context, only: str, interactive: bool) -> None:
    """인증부터 Cloud Run 배포까지 단계를 순서대로 실행"""
    cfg = _load_config_from_ctx(ctx)

    only_list: Optional[list[str]] = None
    if only.strip():
        only_list = [p.strip() for p in only.split(",") if p.strip()]

        invalid = sorted({s for s in only_list if s not in ALL_STEPS})
        if invalid:
            click.echo(
                "[ERROR] 잘못된 단계 이름이 있습니다: "
                + ", ".join(invalid)
                + f"\n허용되는 단계: {', '.join(ALL_STEPS)}",
                err=True,
            )
            sys.exit(1)

    summary, has_failures = apply_all(cfg, only_steps=only_list, interactive=interactive)
    click.echo(summary)

    if has_failures:
        sys.exit(1)


@main.command(name="run-local")
@click.option("--host-port", type=int, default=None, help="로컬에 노출할 포트 (기본: CONTAINER_PORT)")
@click.option("--build/--no-build", default=True, show_default=True, help="실행 전에 docker build 를 수행합니다.")
@click.option("-d", "--detach", is_flag=True, help="컨테이너를 백그라운드로 실행합니다.")
@click.pass_context
def run_local(ctx: click.Context, host_port: Optional[int], build: bool, detach: bool) -> None:
    """빌드한 이미지를 로컬 docker 로 실행해 확인"""
    cfg = _load_config_from_ctx(ctx)
    try:
        if build:
            gcp_artifact_registry.build_image(cfg)
        local_url = f"http://localhost:{host_port or cfg.port}"
        click.echo(f"로컬 URL: {local_url}")
        docker_local.run_local(cfg, host_port=host_port, detach=detach)
    except KeyboardInterrupt:
        click.echo("중단했습니다.", err=True)
    except RuntimeError as e:
        click.echo(f"[ERROR] 로컬 실행 실패: {e}", err=True)
        sys.exit(1)


@main.command()
@click.pass_context
def url(ctx: click.Context) -> None:
    """배포된 Cloud Run 서비스 URL 을 출력"""
    cfg = _load_config_from_ctx(ctx)
    try:
        service_url = gcp_cloud_run.service_url(cfg)
    except RuntimeError as e:
        click.echo(f"[ERROR] 서비스 조회 실패: {e}", err=True)
        sys.exit(1)

    if not service_url:
        click.echo(f"[ERROR] 서비스 URL 이 없습니다: {cfg.service_name}", err=True)
        sys.exit(1)
    click.echo(service_url)
