"""
Приём результатов практики и слияние в накопленную статистику

Одна отправка = одна транзакция: прогресс урока, статистика букв и
шаблоны ошибок обновляются вместе или не обновляются вовсе.
Строки агрегатов блокируются (FOR UPDATE) в фиксированном порядке:
прогресс → буквы по алфавиту → шаблоны по алфавиту.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Tuple

from practice.config import config
from practice.database import queries as db
from practice.database.connection import transaction
from practice.database.models import LessonProgress, LetterStatistic, TypingPattern
from practice.roles import Identity
from practice.schemas import (
    LetterSample, ErrorPatternSample, SessionPayload,
    parse_session_payload, split_pattern_key
)
from practice.services.access import require_access
from practice.services.grading import Grade, SessionMetrics, clamp_session, grade

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LetterDelta:
    """Вклад одной сессии в статистику буквы"""
    correct_count: int
    incorrect_count: int
    total_time_ms: int
    errors: Dict[str, int]


@dataclass(frozen=True)
class PatternDelta:
    """Вклад одной сессии в шаблон ошибки"""
    count: int
    pattern_type: str


@dataclass
class SubmissionResult:
    progress: Optional[LessonProgress]
    letters_updated: int
    patterns_updated: int
    duplicate: bool = False


# ============================================
# Pure merge rules
# ============================================

def merge_progress(
    existing: LessonProgress,
    metrics: SessionMetrics,
    result: Grade,
    now: datetime
) -> LessonProgress:
    """
    Лучшие значения — максимум по каждому полю отдельно,
    время и попытки — сумма, completed только false → true.
    """
    newly_completed = result.completed and not existing.completed
    return replace(
        existing,
        score=max(existing.score, metrics.score),
        speed=max(existing.speed, metrics.speed),
        accuracy=max(existing.accuracy, metrics.accuracy),
        stars=max(existing.stars, result.stars),
        time_spent=existing.time_spent + metrics.time_spent,
        attempts=existing.attempts + 1,
        completed=existing.completed or result.completed,
        last_attempt_at=now,
        completed_at=now if newly_completed else existing.completed_at,
    )


def merge_common_errors(current: Dict[str, int], new: Dict[str, int]) -> Dict[str, int]:
    """Сумма счётчиков по общим ключам, объединение остальных"""
    merged = dict(current or {})
    for char, count in (new or {}).items():
        merged[char] = merged.get(char, 0) + count
    return merged


def merge_letter(existing: LetterStatistic, delta: LetterDelta, now: datetime) -> LetterStatistic:
    """Счётчики только прибавляются, никогда не пересчитываются"""
    return replace(
        existing,
        correct_count=existing.correct_count + delta.correct_count,
        incorrect_count=existing.incorrect_count + delta.incorrect_count,
        total_time_ms=existing.total_time_ms + delta.total_time_ms,
        common_errors=merge_common_errors(existing.common_errors, delta.errors),
        last_practiced_at=now,
    )


def merge_pattern(
    existing: TypingPattern,
    delta: PatternDelta,
    metrics: SessionMetrics,
    now: datetime
) -> TypingPattern:
    """
    Число повторов накапливается, а скорость и точность —
    снимок последней сессии, не среднее.
    """
    return replace(
        existing,
        pattern_type=delta.pattern_type,
        occurrences=existing.occurrences + delta.count,
        avg_speed=metrics.speed,
        avg_accuracy=metrics.accuracy,
        last_occurrence=now,
    )


def collect_letter_deltas(samples: Iterable[LetterSample]) -> Dict[str, LetterDelta]:
    """Сложить записи одной буквы, если клиент прислал её несколько раз"""
    deltas: Dict[str, LetterDelta] = {}
    for sample in samples:
        delta = LetterDelta(
            correct_count=sample.correctCount,
            incorrect_count=sample.incorrectCount,
            total_time_ms=sample.time_ms,
            errors=dict(sample.errors),
        )
        previous = deltas.get(sample.letter)
        if previous:
            delta = LetterDelta(
                correct_count=previous.correct_count + delta.correct_count,
                incorrect_count=previous.incorrect_count + delta.incorrect_count,
                total_time_ms=previous.total_time_ms + delta.total_time_ms,
                errors=merge_common_errors(previous.errors, delta.errors),
            )
        deltas[sample.letter] = delta
    return deltas


def collect_pattern_deltas(patterns: Dict[str, ErrorPatternSample]) -> Dict[Tuple[str, str], PatternDelta]:
    """'<ожидали>-><набрали>' → (from_char, to_char)"""
    return {
        split_pattern_key(key): PatternDelta(count=sample.count, pattern_type=sample.type)
        for key, sample in patterns.items()
    }


# ============================================
# Submission
# ============================================

async def submit(
    identity: Identity,
    lesson_id: int,
    payload: Any,
    now: Optional[datetime] = None
) -> SubmissionResult:
    """
    Принять результат сессии.

    Доступ проверяется заново при каждой отправке, внутри той же транзакции.
    Повтор с уже виденным submissionId ничего не меняет (если включено
    DEDUPLICATE_SUBMISSIONS); без submissionId повторы учитываются как
    отдельные попытки.
    """
    if not isinstance(payload, SessionPayload):
        payload = parse_session_payload(payload)

    metrics = clamp_session(payload.score, payload.speed, payload.accuracy, payload.timeSpent)
    result = grade(metrics.accuracy, metrics.speed)
    letters = collect_letter_deltas(payload.letterData or [])
    patterns = collect_pattern_deltas(payload.errorPatterns or {})
    now = now or datetime.now(timezone.utc)
    student_id = identity.user_id

    async with transaction() as conn:
        await require_access(identity, lesson_id, conn=conn)

        if payload.submissionId and config.DEDUPLICATE_SUBMISSIONS:
            is_new = await db.register_submission(conn, student_id, lesson_id, payload.submissionId)
            if not is_new:
                logger.info(
                    f"Повторная отправка {payload.submissionId} "
                    f"(ученик {student_id}, урок {lesson_id}) пропущена"
                )
                progress = await db.get_lesson_progress(student_id, lesson_id, conn=conn)
                return SubmissionResult(progress, 0, 0, duplicate=True)

        progress = await db.lock_lesson_progress(conn, student_id, lesson_id)
        progress = await db.save_lesson_progress(conn, merge_progress(progress, metrics, result, now))

        for letter in sorted(letters):
            stat = await db.lock_letter_statistic(conn, student_id, letter)
            await db.save_letter_statistic(conn, merge_letter(stat, letters[letter], now))

        for from_char, to_char in sorted(patterns):
            pattern = await db.lock_typing_pattern(conn, student_id, from_char, to_char)
            merged = merge_pattern(pattern, patterns[(from_char, to_char)], metrics, now)
            await db.save_typing_pattern(conn, merged)

    logger.info(
        f"Сессия принята: ученик {student_id}, урок {lesson_id}, "
        f"попытка {progress.attempts}, звёзд {result.stars}, "
        f"букв {len(letters)}, шаблонов {len(patterns)}"
    )
    return SubmissionResult(progress, len(letters), len(patterns))
