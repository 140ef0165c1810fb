"""
checks
------

`check` 명령에서 사용하는 점검 결과 타입.
"""

from __future__ import annotations

from dataclasses import dataclass


OK = "ok"
WARNING = "warning"  # 배포 시 우리가 생성/활성화할 수 있는 항목
CRITICAL = "critical"  # 사람이 먼저 해결해야 하는 항목


@dataclass(frozen=True)
class CheckItem:
    area: str
    level: str
    message: str

    def __str__(self) -> str:
        return f"{self.area}: {self.message}"
