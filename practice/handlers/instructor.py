"""
HTTP-обработчики преподавателя
"""

from fastapi import APIRouter, Depends

from practice.roles import Identity
from practice.services import letter_report
from practice.handlers.auth import get_identity

router = APIRouter()


@router.get("/students/{student_id}/letter-stats")
async def get_student_letter_stats(student_id: int, identity: Identity = Depends(get_identity)):
    """Статистика букв ученика для преподавателя или администратора"""
    return await letter_report.get_letter_report_for(identity, student_id)
