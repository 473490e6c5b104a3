"""
Чтение урока учеником
"""

from typing import Optional, Tuple

from practice.database import queries as db
from practice.database.connection import store_errors
from practice.database.models import Lesson, LessonProgress
from practice.errors import NotAuthorized
from practice.roles import Identity
from practice.services.access import require_access


async def get_lesson_with_progress(
    identity: Identity,
    lesson_id: int
) -> Tuple[Lesson, Optional[LessonProgress]]:
    """Урок и прогресс текущего ученика (None, если попыток ещё не было)"""
    await require_access(identity, lesson_id)

    async with store_errors():
        lesson = await db.get_lesson(lesson_id)
        if not lesson:
            raise NotAuthorized("Not authorized to access this lesson")
        progress = await db.get_lesson_progress(identity.user_id, lesson_id)

    return lesson, progress
