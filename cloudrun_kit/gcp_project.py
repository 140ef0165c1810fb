"""
gcp_project
-----------

프로젝트 존재 여부, 결제 계정 연결, 필수 API enable 을 담당하는 모듈.

결제 계정이 연결되지 않은 프로젝트에서는 `gcloud services enable` 이 실패한다.
BILLING_ACCOUNT_ID 가 설정되어 있으면 `gcloud billing projects link` 후 한 번 재시도하고,
아니면 BillingNotEnabledError 로 두 가지 해결 방법을 안내한다.
"""

from __future__ import annotations

from .checks import CheckItem, CRITICAL, OK, WARNING
from .config import DeployConfig
from .errors import BillingNotEnabledError
from .logging_utils import get_logger
from .subprocess_utils import CommandError, CommandNotFoundError, RunResult, run_command


logger = get_logger(__name__)


REQUIRED_APIS_BASE = [
    "run.googleapis.com",
    "artifactregistry.googleapis.com",
]

REQUIRED_APIS_CLOUD_BUILD = ["cloudbuild.googleapis.com"]


def _run(cmd: list[str], **kwargs) -> RunResult:  # noqa: ANN003
    return run_command(cmd, **kwargs)


def required_apis(cfg: DeployConfig) -> list[str]:
    apis = list(REQUIRED_APIS_BASE)
    if cfg.build_mode == "cloud_build":
        apis += REQUIRED_APIS_CLOUD_BUILD
    return sorted(set(apis))


def is_billing_error(output: str) -> bool:
    """
    services enable 실패 출력이 결제 미연결 때문인지 판단한다.

    gcloud 는 보통 `FAILED_PRECONDITION: Billing account for project ... is not found`
    또는 `Billing must be enabled for activation of service(s) ...` 형태로 알려준다.
    """
    text = output.lower()
    if "billing" not in text:
        return False
    # 서비스 이름(cloudbilling.googleapis.com)만 언급하는 PERMISSION_DENIED 등은 제외한다.
    if "failed_precondition" in text and "billing account" in text:
        return True
    markers = (
        "billing must be enabled",
        "billing account for project",
        "billing_disabled",
        "billing is disabled",
    )
    return any(m in text for m in markers)


def billing_enabled(cfg: DeployConfig) -> bool:
    result = _run(
        [
            "gcloud",
            "billing",
            "projects",
            "describe",
            cfg.project_id,
            "--format=value(billingEnabled)",
        ],
        timeout=60.0,
    )
    return result.stdout.strip().lower() == "true"


def link_billing(cfg: DeployConfig) -> None:
    if not cfg.billing_account_id:
        raise ValueError("결제 계정을 연결하려면 BILLING_ACCOUNT_ID 가 필요합니다.")
    logger.info(
        "결제 계정 연결: project=%s billing_account=%s",
        cfg.project_id,
        cfg.billing_account_id,
    )
    _run(
        [
            "gcloud",
            "billing",
            "projects",
            "link",
            cfg.project_id,
            f"--billing-account={cfg.billing_account_id}",
        ],
        timeout=120.0,
    )


def _enable_cmd(cfg: DeployConfig, apis: list[str]) -> list[str]:
    return [
        "gcloud",
        "services",
        "enable",
        *apis,
        f"--project={cfg.project_id}",
        "--quiet",
    ]


def enable_apis(cfg: DeployConfig) -> list[str]:
    """
    필수 API 들을 enable 한다. (이미 켜져 있으면 gcloud 가 no-op 으로 처리)
    """
    apis = required_apis(cfg)
    logger.info("다음 API 들을 활성화합니다: %s", apis)
    cmd = _enable_cmd(cfg, apis)

    try:
        _run(cmd, timeout=600.0, spinner_message="API 활성화 중")
        return apis
    except CommandNotFoundError:
        raise
    except CommandError as e:
        if not is_billing_error(e.output):
            raise
        if not cfg.billing_account_id:
            raise BillingNotEnabledError(cfg.project_id, detail=e.output.strip() or None) from e
        logger.warning("결제 계정이 연결되어 있지 않아 API 활성화에 실패했습니다. 연결 후 재시도합니다.")

    link_billing(cfg)
    try:
        _run(cmd, timeout=600.0, spinner_message="API 활성화 재시도 중")
    except CommandError as e:
        if is_billing_error(e.output):
            raise BillingNotEnabledError(cfg.project_id, detail=e.output.strip() or None) from e
        raise
    return apis


def check_project_and_apis(cfg: DeployConfig) -> list[CheckItem]:
    """
    프로젝트 / 결제 / API 상태를 확인만 한다. 실제 enable 은 수행하지 않는다.
    """
    results: list[CheckItem] = []

    try:
        _run(["gcloud", "projects", "describe", cfg.project_id, "--quiet"], timeout=60.0)
        results.append(CheckItem("Project", OK, f"존재함 ({cfg.project_id})"))
    except CommandNotFoundError:
        results.append(CheckItem("Project", CRITICAL, "gcloud 명령을 찾을 수 없어 확인 불가"))
        return results
    except CommandError as e:
        out = e.output.lower()
        if "not_found" in out or "not found" in out or "permission" in out:
            results.append(
                CheckItem("Project", CRITICAL, f"없음 또는 접근 권한 없음 ({cfg.project_id})")
            )
        else:
            results.append(
                CheckItem("Project", CRITICAL, f"조회 실패 (gcloud projects describe, exit={e.returncode})")
            )
        return results

    try:
        if billing_enabled(cfg):
            results.append(CheckItem("Billing", OK, "결제 계정 연결됨"))
        elif cfg.billing_account_id:
            results.append(
                CheckItem("Billing", WARNING, f"미연결 (배포 시 {cfg.billing_account_id} 로 연결 예정)")
            )
        else:
            err = BillingNotEnabledError(cfg.project_id)
            results.append(
                CheckItem("Billing", CRITICAL, f"미연결 (콘솔에서 연결하거나 BILLING_ACCOUNT_ID 설정: {err.console_url})")
            )
    except CommandError as e:
        # billing API 권한이 없는 계정도 있으므로 경고로만 남긴다.
        results.append(CheckItem("Billing", WARNING, f"상태 확인 불가 (exit={e.returncode})"))

    for api in required_apis(cfg):
        cmd = [
            "gcloud",
            "services",
            "list",
            "--enabled",
            f"--project={cfg.project_id}",
            f"--filter=config.name:{api}",
            "--format=value(config.name)",
            "--quiet",
        ]
        try:
            proc = _run(cmd, timeout=60.0)
        except CommandError as e:
            results.append(CheckItem("API", WARNING, f"{api} 상태 확인 불가 (exit={e.returncode})"))
            continue

        if proc.stdout.strip():
            results.append(CheckItem("API", OK, f"활성화됨 ({api})"))
        else:
            results.append(CheckItem("API", WARNING, f"비활성화 (배포 시 enable 예정) ({api})"))

    return results
