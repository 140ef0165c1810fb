"""
cloudrun_kit
------------

Streamlit 데모 앱을 컨테이너로 빌드하고 Artifact Registry 에 푸시한 뒤
Cloud Run 에 배포하는 CLI 패키지.
gcloud 로그인 → 프로젝트/결제/API → 리포지토리 → 빌드/푸시 → 배포 순서를
환경변수 기반 설정으로 한 번에 실행하는 것을 목표로 한다.
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "orchestrator",
]
