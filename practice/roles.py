"""
Роли пользователей и явный контекст вызова
"""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Роли пользователей платформы"""

    ADMIN = "admin"                    # Администратор платформы
    SCHOOL_ADMIN = "school_admin"      # Администратор школы
    BILLING_ADMIN = "billing_admin"    # Биллинг, без доступа к учебным данным
    INSTRUCTOR = "instructor"          # Преподаватель
    STUDENT = "student"                # Ученик


# Роли, которым разрешено смотреть статистику любого ученика
STAFF_ROLES = frozenset({Role.ADMIN, Role.SCHOOL_ADMIN, Role.INSTRUCTOR})


@dataclass(frozen=True)
class Identity:
    """Проверенный пользователь (результат слоя аутентификации)"""
    user_id: int
    role: Role

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT
