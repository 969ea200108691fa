from __future__ import annotations

import enum
from dataclasses import dataclass


class Role(str, enum.Enum):
    RIDER  = "rider"
    DRIVER = "driver"
    ADMIN  = "admin"


@dataclass(frozen=True)
class Actor:
    """Кто вызывает операцию. Роль приходит из токена, движок её не перепроверяет."""
    id: int
    role: Role

    @property
    def is_rider(self) -> bool:
        return self.role == Role.RIDER

    @property
    def is_driver(self) -> bool:
        return self.role == Role.DRIVER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
