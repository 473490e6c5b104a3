"""
SQL-запросы к базе данных

Функции чтения принимают необязательный conn: внутри транзакции
запрос выполняется на её соединении, иначе — на общем пуле.
Функции lock_* / save_* работают только внутри транзакции.
"""

from typing import Optional, List

import asyncpg

from practice.database.connection import get_pool
from practice.database.models import (
    Lesson, Section, ClassSettings, ClassCourseSettings,
    LessonProgress, LetterStatistic, TypingPattern
)


async def _executor(conn: Optional[asyncpg.Connection] = None):
    return conn if conn is not None else await get_pool()


# ============================================
# Lessons / enrollment chain
# ============================================

LESSON_COLUMNS = """
    id, section_id, name, "order", text, target_score, time_limit,
    goal_speed, min_speed, min_accuracy, disable_backspace, block_on_error,
    instructions
"""


async def get_lesson(lesson_id: int, conn=None) -> Optional[Lesson]:
    """Получить урок по ID"""
    db = await _executor(conn)
    row = await db.fetchrow(
        f"SELECT {LESSON_COLUMNS} FROM lessons WHERE id = $1",
        lesson_id
    )
    if row:
        return Lesson(**dict(row))
    return None


async def get_section(section_id: int, conn=None) -> Optional[Section]:
    """Получить раздел по ID"""
    db = await _executor(conn)
    row = await db.fetchrow(
        'SELECT id, course_id, name, "order" FROM sections WHERE id = $1',
        section_id
    )
    if row:
        return Section(**dict(row))
    return None


async def course_exists(course_id: int, conn=None) -> bool:
    """Существует ли курс"""
    db = await _executor(conn)
    result = await db.fetchval(
        "SELECT EXISTS(SELECT 1 FROM courses WHERE id = $1)",
        course_id
    )
    return result or False


async def get_student_class_ids(user_id: int, conn=None) -> List[int]:
    """Все классы, в которых состоит ученик"""
    db = await _executor(conn)
    rows = await db.fetch(
        "SELECT class_id FROM class_students WHERE user_id = $1 ORDER BY class_id",
        user_id
    )
    return [row["class_id"] for row in rows]


async def get_course_class_ids(course_id: int, conn=None) -> List[int]:
    """Все классы, которым назначен курс"""
    db = await _executor(conn)
    rows = await db.fetch(
        "SELECT class_id FROM class_courses WHERE course_id = $1 ORDER BY class_id",
        course_id
    )
    return [row["class_id"] for row in rows]


# ============================================
# Settings layers
# ============================================

async def get_class_settings(class_id: int, conn=None) -> Optional[ClassSettings]:
    """Настройки класса"""
    db = await _executor(conn)
    row = await db.fetchrow(
        """
        SELECT
            id AS class_id,
            disable_backspace, block_on_error, lock_virtual_keyboard,
            lock_language, lock_hands, sound_fx, voice_over,
            theme, font, show_replay_button, show_lowercase_letters
        FROM classes
        WHERE id = $1
        """,
        class_id
    )
    if row:
        return ClassSettings(**dict(row))
    return None


async def get_class_course_settings(
    class_id: int,
    course_id: int,
    conn=None
) -> Optional[ClassCourseSettings]:
    """Настройки назначения курса классу"""
    db = await _executor(conn)
    row = await db.fetchrow(
        """
        SELECT
            class_id, course_id, has_prerequisite, speed_adjustment,
            accuracy_requirement, lesson_progress_limit, has_placement_test
        FROM class_courses
        WHERE class_id = $1 AND course_id = $2
        """,
        class_id, course_id
    )
    if row:
        return ClassCourseSettings(**dict(row))
    return None


async def get_accessibility_modes(user_id: int, conn=None) -> List[str]:
    """Режимы доступности ученика в порядке профиля"""
    db = await _executor(conn)
    modes = await db.fetchval(
        "SELECT accessibility FROM users WHERE id = $1",
        user_id
    )
    return list(modes or [])


async def user_exists(user_id: int, conn=None) -> bool:
    """Существует ли пользователь"""
    db = await _executor(conn)
    result = await db.fetchval(
        "SELECT EXISTS(SELECT 1 FROM users WHERE id = $1)",
        user_id
    )
    return result or False


# ============================================
# Lesson progress
# ============================================

async def get_lesson_progress(user_id: int, lesson_id: int, conn=None) -> Optional[LessonProgress]:
    """Получить прогресс по уроку"""
    db = await _executor(conn)
    row = await db.fetchrow(
        "SELECT * FROM lesson_progress WHERE user_id = $1 AND lesson_id = $2",
        user_id, lesson_id
    )
    if row:
        return LessonProgress(**dict(row))
    return None


async def lock_lesson_progress(conn, user_id: int, lesson_id: int) -> LessonProgress:
    """
    Заблокировать строку прогресса (FOR UPDATE), создав нулевую при отсутствии.
    Нулевая строка — нейтральная база для слияния: max(0, x) = x, 0 + n = n.
    """
    await conn.execute(
        """
        INSERT INTO lesson_progress (user_id, lesson_id)
        VALUES ($1, $2)
        ON CONFLICT (user_id, lesson_id) DO NOTHING
        """,
        user_id, lesson_id
    )
    row = await conn.fetchrow(
        """
        SELECT * FROM lesson_progress
        WHERE user_id = $1 AND lesson_id = $2
        FOR UPDATE
        """,
        user_id, lesson_id
    )
    return LessonProgress(**dict(row))


async def save_lesson_progress(conn, progress: LessonProgress) -> LessonProgress:
    """Записать результат слияния"""
    row = await conn.fetchrow(
        """
        UPDATE lesson_progress SET
            completed = $2,
            score = $3,
            stars = $4,
            speed = $5,
            accuracy = $6,
            time_spent = $7,
            attempts = $8,
            last_attempt_at = $9,
            completed_at = $10
        WHERE id = $1
        RETURNING *
        """,
        progress.id, progress.completed, progress.score, progress.stars,
        progress.speed, progress.accuracy, progress.time_spent,
        progress.attempts, progress.last_attempt_at, progress.completed_at
    )
    return LessonProgress(**dict(row))


# ============================================
# Letter statistics
# ============================================

async def lock_letter_statistic(conn, user_id: int, letter: str) -> LetterStatistic:
    """Заблокировать статистику буквы, создав пустую при отсутствии"""
    await conn.execute(
        """
        INSERT INTO letter_statistics (user_id, letter)
        VALUES ($1, $2)
        ON CONFLICT (user_id, letter) DO NOTHING
        """,
        user_id, letter
    )
    row = await conn.fetchrow(
        """
        SELECT * FROM letter_statistics
        WHERE user_id = $1 AND letter = $2
        FOR UPDATE
        """,
        user_id, letter
    )
    return LetterStatistic(**dict(row))


async def save_letter_statistic(conn, stat: LetterStatistic) -> LetterStatistic:
    """Записать статистику буквы"""
    row = await conn.fetchrow(
        """
        UPDATE letter_statistics SET
            correct_count = $2,
            incorrect_count = $3,
            total_time_ms = $4,
            common_errors = $5,
            last_practiced_at = $6
        WHERE id = $1
        RETURNING *
        """,
        stat.id, stat.correct_count, stat.incorrect_count,
        stat.total_time_ms, stat.common_errors, stat.last_practiced_at
    )
    return LetterStatistic(**dict(row))


async def get_letter_statistics(user_id: int, conn=None) -> List[LetterStatistic]:
    """Вся статистика букв ученика, самые проблемные — первыми"""
    db = await _executor(conn)
    rows = await db.fetch(
        """
        SELECT * FROM letter_statistics
        WHERE user_id = $1
        ORDER BY incorrect_count DESC, letter
        """,
        user_id
    )
    return [LetterStatistic(**dict(row)) for row in rows]


# ============================================
# Typing patterns
# ============================================

async def lock_typing_pattern(conn, user_id: int, from_char: str, to_char: str) -> TypingPattern:
    """Заблокировать шаблон ошибки, создав пустой при отсутствии"""
    await conn.execute(
        """
        INSERT INTO typing_patterns (user_id, from_char, to_char)
        VALUES ($1, $2, $3)
        ON CONFLICT (user_id, from_char, to_char) DO NOTHING
        """,
        user_id, from_char, to_char
    )
    row = await conn.fetchrow(
        """
        SELECT * FROM typing_patterns
        WHERE user_id = $1 AND from_char = $2 AND to_char = $3
        FOR UPDATE
        """,
        user_id, from_char, to_char
    )
    return TypingPattern(**dict(row))


async def save_typing_pattern(conn, pattern: TypingPattern) -> TypingPattern:
    """Записать шаблон ошибки"""
    row = await conn.fetchrow(
        """
        UPDATE typing_patterns SET
            pattern_type = $2,
            occurrences = $3,
            avg_speed = $4,
            avg_accuracy = $5,
            last_occurrence = $6
        WHERE id = $1
        RETURNING *
        """,
        pattern.id, pattern.pattern_type, pattern.occurrences,
        pattern.avg_speed, pattern.avg_accuracy, pattern.last_occurrence
    )
    return TypingPattern(**dict(row))


async def get_top_typing_patterns(user_id: int, limit: int = 20, conn=None) -> List[TypingPattern]:
    """Самые частые ошибки ученика"""
    db = await _executor(conn)
    rows = await db.fetch(
        """
        SELECT * FROM typing_patterns
        WHERE user_id = $1
        ORDER BY occurrences DESC, id
        LIMIT $2
        """,
        user_id, limit
    )
    return [TypingPattern(**dict(row)) for row in rows]


# ============================================
# Submission fingerprints
# ============================================

async def register_submission(conn, user_id: int, lesson_id: int, submission_id: str) -> bool:
    """
    Запомнить отпечаток отправки.
    False — такая отправка уже была (повтор не сливается).
    """
    inserted = await conn.fetchval(
        """
        INSERT INTO practice_submissions (user_id, lesson_id, submission_id)
        VALUES ($1, $2, $3)
        ON CONFLICT (user_id, lesson_id, submission_id) DO NOTHING
        RETURNING id
        """,
        user_id, lesson_id, submission_id
    )
    return inserted is not None
