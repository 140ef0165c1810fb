"""
templates
---------

`init` 명령이 생성하는 Dockerfile / .dockerignore / .env.deploy.example 템플릿.
"""

from __future__ import annotations

import os
from importlib import resources
from string import Template
from typing import List, Tuple


DEFAULT_PYTHON_VERSION = "3.11"
DEFAULT_ENTRYPOINT = "app.py"

# (패키지 리소스 이름, 생성할 파일 이름)
TEMPLATE_FILES: List[Tuple[str, str]] = [
    ("Dockerfile.tmpl", "Dockerfile"),
    ("dockerignore.tmpl", ".dockerignore"),
    ("env.deploy.example", ".env.deploy.example"),
]


def _read(name: str) -> str:
    return resources.files(__name__).joinpath(name).read_text(encoding="utf-8")


def render_dockerfile(
    port: int = 8080,
    python_version: str = DEFAULT_PYTHON_VERSION,
    entrypoint: str = DEFAULT_ENTRYPOINT,
) -> str:
    return Template(_read("Dockerfile.tmpl")).substitute(
        port=port,
        python_version=python_version,
        entrypoint=entrypoint,
    )


def write_templates(target_dir: str, port: int = 8080, force: bool = False) -> List[Tuple[str, bool]]:
    """
    target_dir 에 템플릿 파일을 생성한다. 이미 있는 파일은 force=True 일 때만 덮어쓴다.

    Returns:
        (파일 이름, 생성 여부) 목록
    """
    results: List[Tuple[str, bool]] = []
    for resource_name, filename in TEMPLATE_FILES:
        path = os.path.join(target_dir, filename)
        if os.path.exists(path) and not force:
            results.append((filename, False))
            continue
        if resource_name == "Dockerfile.tmpl":
            content = render_dockerfile(port=port)
        else:
            content = _read(resource_name)
        with open(path, "w", encoding="utf-8") as dst:
            dst.write(content)
        results.append((filename, True))
    return results
