"""
Integration-тесты запросов и движка телеметрии на PostgreSQL

Требуют TEST_DATABASE_URL; без БД пропускаются.
"""

import pytest

pytestmark = [pytest.mark.asyncio, pytest.mark.integration]

from conftest import count_rows
from practice.database import queries as db
from practice.errors import NotAuthorized
from practice.services import telemetry
from practice.services.access import can_access
from practice.services.lesson_config import resolve_for_student
from practice.services.lessons import get_lesson_with_progress


SESSION = {
    "score": 430,
    "speed": 43,
    "accuracy": 96,
    "timeSpent": 60,
    "letterData": [
        {"letter": "e", "correctCount": 3, "incorrectCount": 1, "totalTimeMs": 800, "errors": {"t": 1}},
    ],
    "errorPatterns": {"e->t": {"count": 1, "type": "substitution"}},
}


# ============================================
# Tests: enrollment chain
# ============================================

async def test_can_access_enrolled(enrolled_student):
    access = await can_access(enrolled_student["student_id"], enrolled_student["lesson_id"])
    assert access.allowed is True
    assert access.class_ids == (enrolled_student["class_id"],)
    assert access.course_id == enrolled_student["course_id"]


async def test_can_access_outsider(enrolled_student, outsider):
    access = await can_access(outsider.user_id, enrolled_student["lesson_id"])
    assert access.allowed is False


async def test_can_access_picks_smallest_shared_class(enrolled_student):
    """Тест: ученик в двух классах курса → классы по возрастанию id"""
    pool = enrolled_student["pool"]
    second_class = await pool.fetchval(
        "INSERT INTO classes (name, school_id) VALUES ('5B', $1) RETURNING id",
        enrolled_student["school_id"]
    )
    await pool.execute(
        "INSERT INTO class_students (class_id, user_id) VALUES ($1, $2)",
        second_class, enrolled_student["student_id"]
    )
    await pool.execute(
        "INSERT INTO class_courses (class_id, course_id) VALUES ($1, $2)",
        second_class, enrolled_student["course_id"]
    )

    access = await can_access(enrolled_student["student_id"], enrolled_student["lesson_id"])
    assert access.class_ids == (enrolled_student["class_id"], second_class)
    assert access.primary_class_id == enrolled_student["class_id"]


# ============================================
# Tests: submit()
# ============================================

async def test_first_submission_creates_rows(enrolled_student):
    result = await telemetry.submit(enrolled_student["identity"], enrolled_student["lesson_id"], SESSION)

    assert result.progress.attempts == 1
    assert result.progress.stars == 3
    assert result.progress.completed is True
    assert result.progress.completed_at is not None

    stats = await db.get_letter_statistics(enrolled_student["student_id"])
    assert len(stats) == 1
    assert stats[0].common_errors == {"t": 1}

    patterns = await db.get_top_typing_patterns(enrolled_student["student_id"])
    assert [(p.from_char, p.to_char, p.occurrences) for p in patterns] == [("e", "t", 1)]


async def test_same_session_twice_keeps_best_and_adds_counters(enrolled_student):
    """Тест: лучшие значения не меняются, время/попытки/буквы растут"""
    identity = enrolled_student["identity"]
    lesson_id = enrolled_student["lesson_id"]

    first = await telemetry.submit(identity, lesson_id, SESSION)
    second = await telemetry.submit(identity, lesson_id, SESSION)

    for field in ("score", "speed", "accuracy", "stars"):
        assert getattr(second.progress, field) == getattr(first.progress, field)
    assert second.progress.time_spent == 120
    assert second.progress.attempts == 2
    assert second.progress.completed_at == first.progress.completed_at

    [stat] = await db.get_letter_statistics(enrolled_student["student_id"])
    assert (stat.correct_count, stat.incorrect_count) == (6, 2)
    assert stat.common_errors == {"t": 2}
    assert stat.total_time_ms == 1600

    [pattern] = await db.get_top_typing_patterns(enrolled_student["student_id"])
    assert pattern.occurrences == 2


async def test_pattern_metrics_are_latest_snapshot(enrolled_student):
    identity = enrolled_student["identity"]
    lesson_id = enrolled_student["lesson_id"]

    await telemetry.submit(identity, lesson_id, SESSION)
    await telemetry.submit(identity, lesson_id, dict(SESSION, speed=20, accuracy=70))

    [pattern] = await db.get_top_typing_patterns(enrolled_student["student_id"])
    assert pattern.avg_speed == 20
    assert pattern.avg_accuracy == 70

    progress = await db.get_lesson_progress(enrolled_student["student_id"], lesson_id)
    assert progress.speed == 43
    assert progress.accuracy == 96


async def test_denied_submission_writes_nothing(enrolled_student, outsider):
    """Тест: незачисленный ученик — отказ, ни одной строки"""
    pool = enrolled_student["pool"]

    with pytest.raises(NotAuthorized):
        await telemetry.submit(outsider, enrolled_student["lesson_id"], dict(SESSION, submissionId="x"))

    for table in ("lesson_progress", "letter_statistics", "typing_patterns", "practice_submissions"):
        assert await count_rows(pool, table) == 0


async def test_duplicate_submission_id_merged_once(enrolled_student):
    identity = enrolled_student["identity"]
    lesson_id = enrolled_student["lesson_id"]
    payload = dict(SESSION, submissionId="session-42")

    first = await telemetry.submit(identity, lesson_id, payload)
    beacon = await telemetry.submit(identity, lesson_id, payload)

    assert beacon.duplicate is True
    assert beacon.progress.attempts == first.progress.attempts == 1
    assert beacon.progress.time_spent == 60

    [stat] = await db.get_letter_statistics(enrolled_student["student_id"])
    assert stat.correct_count == 3


async def test_submission_without_id_keeps_legacy_double_count(enrolled_student):
    identity = enrolled_student["identity"]
    lesson_id = enrolled_student["lesson_id"]

    await telemetry.submit(identity, lesson_id, SESSION)
    result = await telemetry.submit(identity, lesson_id, SESSION)

    assert result.duplicate is False
    assert result.progress.attempts == 2


# ============================================
# Tests: configuration from stored layers
# ============================================

async def test_resolve_for_student_uses_stored_layers(enrolled_student):
    pool = enrolled_student["pool"]
    await pool.execute(
        "UPDATE classes SET theme = 'ocean', disable_backspace = TRUE WHERE id = $1",
        enrolled_student["class_id"]
    )
    await pool.execute(
        """
        UPDATE class_courses SET speed_adjustment = -5, accuracy_requirement = 75
        WHERE class_id = $1 AND course_id = $2
        """,
        enrolled_student["class_id"], enrolled_student["course_id"]
    )
    await pool.execute(
        "UPDATE users SET accessibility = $2 WHERE id = $1",
        enrolled_student["student_id"], ["dyslexic", "blind"]
    )

    config = await resolve_for_student(enrolled_student["identity"], enrolled_student["lesson_id"])

    assert config.theme == "ocean"
    assert config.disable_backspace is True
    assert config.speed_adjustment == -5
    assert config.accuracy_requirement == 75
    assert config.font_size == "extra-large"
    assert config.font == "dyslexic"
    assert config.goal_speed == 25
    assert config.min_accuracy == 80


async def test_resolve_for_foreign_class_rejected(enrolled_student):
    pool = enrolled_student["pool"]
    other_class = await pool.fetchval(
        "INSERT INTO classes (name, school_id) VALUES ('6C', $1) RETURNING id",
        enrolled_student["school_id"]
    )

    with pytest.raises(NotAuthorized):
        await resolve_for_student(
            enrolled_student["identity"], enrolled_student["lesson_id"], class_id=other_class
        )


# ============================================
# Tests: lesson fetch
# ============================================

async def test_lesson_fetch_before_and_after_attempt(enrolled_student):
    identity = enrolled_student["identity"]
    lesson_id = enrolled_student["lesson_id"]

    lesson, progress = await get_lesson_with_progress(identity, lesson_id)
    assert lesson.id == lesson_id
    assert lesson.goal_speed == 25
    assert progress is None

    await telemetry.submit(identity, lesson_id, SESSION)

    _, progress = await get_lesson_with_progress(identity, lesson_id)
    assert progress.attempts == 1
    assert progress.completed is True


async def test_lesson_fetch_outsider_rejected(enrolled_student, outsider):
    with pytest.raises(NotAuthorized):
        await get_lesson_with_progress(outsider, enrolled_student["lesson_id"])
