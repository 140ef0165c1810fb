import os

import pytest

from cloudrun_kit.config import DeployConfig, load_env_files


def _base_env(monkeypatch: pytest.MonkeyPatch, **extra: str) -> None:
    env = {
        "PROJECT_ID": "test-project",
        "REGION": "us-central1",
    }
    env.update(extra)
    for key, value in env.items():
        monkeypatch.setenv(key, value)


def test_missing_required_env_raises_value_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REGION", "us-central1")

    with pytest.raises(ValueError) as excinfo:
        DeployConfig.from_env()

    assert "PROJECT_ID" in str(excinfo.value)
    assert "REGION" not in str(excinfo.value)


def test_missing_both_required_values_are_listed(monkeypatch: pytest.MonkeyPatch) -> None:
    with pytest.raises(ValueError) as excinfo:
        DeployConfig.from_env()

    assert "PROJECT_ID" in str(excinfo.value)
    assert "REGION" in str(excinfo.value)


def test_defaults_and_image_url(monkeypatch: pytest.MonkeyPatch) -> None:
    _base_env(monkeypatch)

    cfg = DeployConfig.from_env()

    assert cfg.service_name == "streamlit-demo"
    assert cfg.image_name == "streamlit-demo"
    assert cfg.port == 8080
    assert cfg.build_mode == "local_docker"
    assert cfg.docker_platform == "linux/amd64"
    assert cfg.allow_unauthenticated is True
    assert cfg.registry_host == "us-central1-docker.pkg.dev"
    assert cfg.image_url == (
        "us-central1-docker.pkg.dev/test-project/cloud-run-source-deploy/streamlit-demo:latest"
    )


def test_custom_image_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    _base_env(
        monkeypatch,
        ARTIFACT_REPO="apps",
        SERVICE_NAME="demo",
        IMAGE_NAME="demo-img",
        IMAGE_TAG="v2",
        ALLOW_UNAUTHENTICATED="false",
        DOCKER_PLATFORM="",
    )

    cfg = DeployConfig.from_env()

    assert cfg.image_url == "us-central1-docker.pkg.dev/test-project/apps/demo-img:v2"
    assert cfg.allow_unauthenticated is False
    assert cfg.docker_platform is None


def test_invalid_build_mode(monkeypatch: pytest.MonkeyPatch) -> None:
    _base_env(monkeypatch, BUILD_MODE="kaniko")

    with pytest.raises(ValueError) as excinfo:
        DeployConfig.from_env()

    assert "BUILD_MODE" in str(excinfo.value)


@pytest.mark.parametrize("port", ["http", "0", "70000"])
def test_invalid_port(monkeypatch: pytest.MonkeyPatch, port: str) -> None:
    _base_env(monkeypatch, CONTAINER_PORT=port)

    with pytest.raises(ValueError) as excinfo:
        DeployConfig.from_env()

    assert "CONTAINER_PORT" in str(excinfo.value)


@pytest.mark.parametrize("name", ["Demo", "1demo", "demo-", "a" * 50, "demo_app"])
def test_invalid_service_name(monkeypatch: pytest.MonkeyPatch, name: str) -> None:
    _base_env(monkeypatch, SERVICE_NAME=name)

    with pytest.raises(ValueError) as excinfo:
        DeployConfig.from_env()

    assert "SERVICE_NAME" in str(excinfo.value)


def test_load_env_files_later_file_overrides(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ".env").write_text("PROJECT_ID=from-env\nREGION=asia-northeast3\n", encoding="utf-8")
    (tmp_path / ".env.deploy").write_text("PROJECT_ID=from-deploy\n", encoding="utf-8")
    # setenv 로 기록해 두어야 테스트 종료 후 원래 상태로 되돌아간다.
    monkeypatch.setenv("PROJECT_ID", "placeholder")
    monkeypatch.setenv("REGION", "placeholder")

    load_env_files(str(tmp_path))

    assert os.environ["PROJECT_ID"] == "from-deploy"
    assert os.environ["REGION"] == "asia-northeast3"
