"""
Отчёт по буквам и типичным ошибкам ученика
"""

import logging
from typing import List

from practice.database import queries as db
from practice.database.connection import store_errors
from practice.database.models import LetterStatistic, TypingPattern
from practice.errors import NotAuthorized, NotFound
from practice.roles import Identity, STAFF_ROLES

logger = logging.getLogger(__name__)

TOP_PATTERNS_LIMIT = 20


def letter_row(stat: LetterStatistic) -> dict:
    """Строка отчёта: точность в %, среднее время на верное нажатие"""
    total = stat.correct_count + stat.incorrect_count
    accuracy = round(stat.correct_count / total * 100) if total > 0 else 0
    avg_time_ms = round(stat.total_time_ms / stat.correct_count) if stat.correct_count > 0 else 0

    return {
        "letter": stat.letter,
        "correctCount": stat.correct_count,
        "incorrectCount": stat.incorrect_count,
        "totalCount": total,
        "accuracy": accuracy,
        "avgTimeMs": avg_time_ms,
        "commonErrors": stat.common_errors,
        "lastPracticed": stat.last_practiced_at,
    }


def pattern_row(pattern: TypingPattern) -> dict:
    return {
        "from": pattern.from_char,
        "to": pattern.to_char,
        "type": pattern.pattern_type,
        "count": pattern.occurrences,
        "lastOccurrence": pattern.last_occurrence,
    }


async def get_letter_report(student_id: int) -> dict:
    """Статистика всех букв (сначала проблемные) и топ шаблонов ошибок"""
    async with store_errors():
        stats: List[LetterStatistic] = await db.get_letter_statistics(student_id)
        patterns = await db.get_top_typing_patterns(student_id, limit=TOP_PATTERNS_LIMIT)

    return {
        "letterStats": [letter_row(stat) for stat in stats],
        "patterns": [pattern_row(pattern) for pattern in patterns],
    }


async def get_letter_report_for(identity: Identity, student_id: int) -> dict:
    """Ученик видит только свой отчёт, преподаватели и администраторы — любой"""
    if identity.is_student:
        if identity.user_id != student_id:
            raise NotAuthorized("Not authorized to view this student")
    elif identity.role not in STAFF_ROLES:
        raise NotAuthorized("Not authorized to view letter statistics")
    else:
        async with store_errors():
            exists = await db.user_exists(student_id)
        if not exists:
            raise NotFound(f"Student {student_id} not found")

    return await get_letter_report(student_id)
