"""
报名领域实体

(user_id, package_id) 唯一：这是重复确认支付时的幂等锚点。
报名从不物理删除，退款只会将 is_active 置为 False。
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from domain.common.timeutil import ensure_utc


@dataclass
class Enrollment:
    id: Optional[int]
    user_id: int
    package_id: int
    is_active: bool = True
    expires_at: Optional[datetime] = None
    progress: int = 0
    completed_lessons: int = 0
    enrolled_at: Optional[datetime] = None

    def __post_init__(self):
        self.expires_at = ensure_utc(self.expires_at)
        self.enrolled_at = ensure_utc(self.enrolled_at)
