"""
HTTP-обработчики ученика: урок, конфигурация, доступ, отправка сессии
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from practice.errors import NotAuthorized, ValidationError
from practice.roles import Identity
from practice.schemas import (
    AccessResponse, EffectiveConfigResponse, LessonWithProgressResponse,
    SubmissionResponse, LessonResponse, LessonProgressResponse,
    parse_session_payload
)
from practice.services import lesson_config, letter_report, lessons, telemetry
from practice.services.access import require_access
from practice.handlers.auth import get_student

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/lessons/{lesson_id}", response_model=LessonWithProgressResponse)
async def get_lesson(lesson_id: int, identity: Identity = Depends(get_student)):
    """Урок и прогресс ученика"""
    lesson, progress = await lessons.get_lesson_with_progress(identity, lesson_id)
    return LessonWithProgressResponse(
        lesson=LessonResponse.model_validate(lesson),
        progress=LessonProgressResponse.model_validate(progress) if progress else None,
    )


@router.get("/lessons/{lesson_id}/access", response_model=AccessResponse)
async def check_access(lesson_id: int, identity: Identity = Depends(get_student)):
    """Есть ли доступ и через какие классы"""
    try:
        access = await require_access(identity, lesson_id)
    except NotAuthorized:
        return AccessResponse(allowed=False, class_ids=[])
    return AccessResponse(allowed=access.allowed, class_ids=list(access.class_ids))


@router.get("/lessons/{lesson_id}/config", response_model=EffectiveConfigResponse)
async def get_config(
    lesson_id: int,
    classId: Optional[int] = None,
    identity: Identity = Depends(get_student)
):
    """Итоговая конфигурация урока до начала попытки"""
    config = await lesson_config.resolve_for_student(identity, lesson_id, class_id=classId)
    return EffectiveConfigResponse.model_validate(config)


@router.post("/lessons/{lesson_id}/sessions", response_model=SubmissionResponse)
async def submit_session(lesson_id: int, request: Request, identity: Identity = Depends(get_student)):
    """
    Результат попытки. Тело читается вручную: beacon при закрытии
    страницы приходит как text/plain.
    """
    body = await request.body()
    try:
        data = json.loads(body) if body else None
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Request body is not valid JSON") from e

    payload = parse_session_payload(data)
    result = await telemetry.submit(identity, lesson_id, payload)
    return SubmissionResponse.model_validate(result)


@router.get("/letter-stats")
async def get_own_letter_stats(identity: Identity = Depends(get_student)):
    """Статистика букв текущего ученика"""
    return await letter_report.get_letter_report_for(identity, identity.user_id)
