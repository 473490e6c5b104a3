"""
Проверка доступа ученика к уроку по цепочке
урок → раздел → курс → (класс, курс) → (класс, ученик)

Только чтение, без побочных эффектов.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from practice.database import queries as db
from practice.database.connection import store_errors
from practice.errors import NotFound, NotAuthorized
from practice.roles import Identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessResult:
    """Результат проверки: общие классы ученика и курса по возрастанию id"""
    allowed: bool
    class_ids: Tuple[int, ...]
    course_id: int

    @property
    def primary_class_id(self) -> Optional[int]:
        """Класс, настройки которого применяются (наименьший id)"""
        return self.class_ids[0] if self.class_ids else None


async def resolve_course_id(lesson_id: int, conn=None) -> int:
    """Курс урока. NotFound, если цепочка урок → раздел → курс разорвана"""
    lesson = await db.get_lesson(lesson_id, conn=conn)
    if not lesson:
        raise NotFound(f"Lesson {lesson_id} not found")

    section = await db.get_section(lesson.section_id, conn=conn)
    if not section:
        raise NotFound(f"Section {lesson.section_id} not found")

    if not await db.course_exists(section.course_id, conn=conn):
        raise NotFound(f"Course {section.course_id} not found")

    return section.course_id


async def can_access(student_id: int, lesson_id: int, conn=None) -> AccessResult:
    """
    Есть ли у ученика доступ к уроку.

    Доступ есть, если хотя бы один класс ученика получил курс урока.
    Поднимает NotFound при разорванной цепочке урока.
    """
    async with store_errors():
        course_id = await resolve_course_id(lesson_id, conn=conn)
        student_classes = await db.get_student_class_ids(student_id, conn=conn)
        course_classes = await db.get_course_class_ids(course_id, conn=conn)

    shared = tuple(sorted(set(student_classes) & set(course_classes)))
    return AccessResult(allowed=bool(shared), class_ids=shared, course_id=course_id)


async def require_access(identity: Identity, lesson_id: int, conn=None) -> AccessResult:
    """
    Доступ для операций ученика.
    Отсутствующий урок и отсутствие зачисления снаружи неразличимы: NotAuthorized.
    """
    if not identity.is_student:
        raise NotAuthorized("Only students can practice lessons")

    try:
        access = await can_access(identity.user_id, lesson_id, conn=conn)
    except NotFound as e:
        logger.warning(f"Доступ запрещён: ученик {identity.user_id}, урок {lesson_id}: {e}")
        raise NotAuthorized("Not authorized to access this lesson") from e

    if not access.allowed:
        logger.warning(
            f"Доступ запрещён: ученик {identity.user_id} не зачислен "
            f"в классы курса {access.course_id} (урок {lesson_id})"
        )
        raise NotAuthorized("Not authorized to access this lesson")

    return access
