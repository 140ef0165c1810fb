"""
pytest 설정:

로컬 작업 환경에 설치된 다른 버전의 cloudrun_kit 패키지가 존재할 때,
`pytest` 실행 시 site-packages 쪽이 먼저 import 되어 테스트가 깨질 수 있다.

테스트는 항상 현재 레포의 소스를 대상으로 해야 하므로, repo root 를 sys.path 최상단에 고정한다.
"""

from __future__ import annotations

import os
import sys
from typing import Callable, List, Optional

import pytest


CONFIG_ENV_KEYS = [
    "PROJECT_ID",
    "REGION",
    "ARTIFACT_REPO",
    "SERVICE_NAME",
    "IMAGE_NAME",
    "IMAGE_TAG",
    "SOURCE_DIR",
    "CONTAINER_PORT",
    "BUILD_MODE",
    "DOCKER_PLATFORM",
    "ALLOW_UNAUTHENTICATED",
    "MEMORY",
    "CPU",
    "MAX_INSTANCES",
    "BILLING_ACCOUNT_ID",
    "CLI_SHOW_PROGRESS",
    "CLI_PROGRESS_IDLE_SECONDS",
    "CLI_PROGRESS_STYLE",
    "CLI_PROGRESS_INTERVAL_SECONDS",
]


def pytest_configure() -> None:
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # 개발자 셸의 PROJECT_ID/REGION 등이 테스트에 섞이지 않도록 한다.
    for key in CONFIG_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class FakeRunner:
    """
    모듈의 `_run` 자리에 끼워 넣는 가짜 실행기.

    handler(cmd) 가 RunResult 를 돌려주거나 예외를 던지게 해서 gcloud/docker 응답을 흉내낸다.
    """

    def __init__(self, handler: Optional[Callable] = None) -> None:
        self.calls: List[list[str]] = []
        self.kwargs: List[dict] = []
        self._handler = handler

    def __call__(self, cmd, **kwargs):  # noqa: ANN001, ANN003, ANN204
        from cloudrun_kit.subprocess_utils import RunResult

        self.calls.append(list(cmd))
        self.kwargs.append(kwargs)
        if self._handler is not None:
            result = self._handler(list(cmd))
            if result is not None:
                return result
        return RunResult(returncode=0, stdout="", stderr="")


@pytest.fixture
def fake_runner() -> Callable[..., FakeRunner]:
    return FakeRunner
