"""
errors
------

배포 단계에서 사용하는 예외 계층.

외부 명령 실패는 subprocess_utils 의 CommandError 계열로,
사람이 조치해야 하는 상황(로그인 필요, 결제 미연결)은 DeployError 계열로 구분한다.
"""

from __future__ import annotations

from typing import Optional, Sequence


class DeployError(RuntimeError):
    """사람이 조치해야 배포를 이어갈 수 있는 오류."""


class NotAuthenticatedError(DeployError):
    def __init__(self) -> None:
        super().__init__(
            "활성화된 gcloud 계정이 없습니다. `gcloud auth login` 을 먼저 실행하거나 "
            "`cloudrun-kit deploy --interactive` 로 다시 시도하세요."
        )


class BillingNotEnabledError(DeployError):
    """
    프로젝트에 결제 계정이 연결되지 않아 `gcloud services enable` 이 실패한 경우.

    해결 방법은 두 가지다:
    - 웹 콘솔에서 결제 계정 연결 (console_url)
    - CLI 로 연결 (link_command, BILLING_ACCOUNT_ID 설정 시 자동 수행)
    """

    def __init__(self, project_id: str, detail: Optional[str] = None) -> None:
        self.project_id = project_id
        self.console_url = (
            f"https://console.cloud.google.com/billing/linkedaccount?project={project_id}"
        )
        self.link_command: Sequence[str] = (
            "gcloud",
            "billing",
            "projects",
            "link",
            project_id,
            "--billing-account=<BILLING_ACCOUNT_ID>",
        )
        message = (
            f"프로젝트 {project_id} 에 결제 계정이 연결되어 있지 않아 API 를 활성화할 수 없습니다.\n"
            f"- 웹 콘솔: {self.console_url}\n"
            f"- CLI: {' '.join(self.link_command)}\n"
            "  (또는 BILLING_ACCOUNT_ID 를 설정하면 자동으로 연결 후 재시도합니다)"
        )
        if detail:
            message += f"\n원본 오류:\n{detail}"
        super().__init__(message)
