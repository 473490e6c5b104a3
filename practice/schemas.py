"""
Схемы запросов и ответов (pydantic)
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from practice.errors import ValidationError

PATTERN_SEPARATOR = "->"

# Пределы одной сессии: урок не длиннее часа (см. clamp_session),
# счётчики умещаются в INTEGER-колонки агрегатов
MAX_SESSION_KEYSTROKES = 100_000
MAX_SESSION_TIME_MS = 3_600_000

KeystrokeCount = Annotated[int, Field(ge=0, le=MAX_SESSION_KEYSTROKES)]
DurationMs = Annotated[float, Field(ge=0, le=MAX_SESSION_TIME_MS, allow_inf_nan=False)]


# ============================================
# Request: practice session
# ============================================

class LetterSample(BaseModel):
    """Статистика одной буквы за сессию"""
    letter: str = Field(min_length=1)
    correctCount: KeystrokeCount = 0
    incorrectCount: KeystrokeCount = 0
    totalTimeMs: Optional[DurationMs] = None
    avgTimeMs: DurationMs = 0
    errors: Dict[str, KeystrokeCount] = Field(default_factory=dict)

    @property
    def time_ms(self) -> int:
        """Суммарное время; без totalTimeMs — среднее на число нажатий"""
        if self.totalTimeMs is not None:
            return int(round(self.totalTimeMs))
        return int(round(self.avgTimeMs * (self.correctCount + self.incorrectCount)))


class ErrorPatternSample(BaseModel):
    count: KeystrokeCount = 1
    type: str = "substitution"


class SessionPayload(BaseModel):
    """Результат попытки урока (явное завершение или beacon при уходе со страницы)"""
    model_config = ConfigDict(extra="ignore")

    score: float = 0
    speed: float = 0
    accuracy: float = 0
    timeSpent: float = 0
    letterData: Optional[List[LetterSample]] = None
    errorPatterns: Optional[Dict[str, ErrorPatternSample]] = None
    submissionId: Optional[str] = Field(default=None, min_length=1, max_length=128)

    @field_validator("errorPatterns")
    @classmethod
    def check_pattern_keys(cls, patterns):
        for key in patterns or {}:
            expected, separator, actual = key.partition(PATTERN_SEPARATOR)
            if not separator or not expected or not actual:
                raise ValueError(f"pattern key must look like '<expected>-><actual>', got {key!r}")
        return patterns


def split_pattern_key(key: str) -> tuple[str, str]:
    """'a->s' → ('a', 's'). Разделитель ищется слева: '-->x' → ('-', 'x')"""
    expected, _, actual = key.partition(PATTERN_SEPARATOR)
    return expected, actual


def parse_session_payload(data: Any) -> SessionPayload:
    """Проверить структуру до любых обращений к хранилищу"""
    try:
        return SessionPayload.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError("Invalid session payload", errors=e.errors()) from e


# ============================================
# Responses
# ============================================

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class LessonProgressResponse(CamelModel):
    id: int
    user_id: int
    lesson_id: int
    completed: bool
    score: float
    stars: int
    speed: float
    accuracy: float
    time_spent: int
    attempts: int
    last_attempt_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class SubmissionResponse(CamelModel):
    progress: Optional[LessonProgressResponse]
    letters_updated: int
    patterns_updated: int
    duplicate: bool = False


class AccessResponse(CamelModel):
    allowed: bool
    class_ids: List[int]


class EffectiveConfigResponse(CamelModel):
    disable_backspace: bool
    block_on_error: bool
    lock_virtual_keyboard: bool
    lock_language: bool
    lock_hands: bool
    sound_fx: bool
    voice_over: bool
    theme: str
    font: str
    show_replay_button: bool
    show_lowercase_letters: bool
    speed_adjustment: int
    accuracy_requirement: int
    target_score: Optional[int] = None
    time_limit: Optional[int] = None
    goal_speed: Optional[int] = None
    min_speed: Optional[int] = None
    min_accuracy: Optional[int] = None
    instructions: Optional[Any] = None
    high_contrast: bool
    font_size: str
    virtual_keyboard_guide: str
    closed_captioning: bool
    games: bool
    anchoring_lessons: bool


class LessonResponse(CamelModel):
    id: int
    section_id: int
    name: str
    order: int
    text: str
    target_score: Optional[int] = None
    time_limit: Optional[int] = None
    goal_speed: Optional[int] = None
    min_speed: Optional[int] = None
    min_accuracy: Optional[int] = None
    disable_backspace: bool
    block_on_error: bool
    instructions: Optional[Any] = None


class LessonWithProgressResponse(CamelModel):
    lesson: LessonResponse
    progress: Optional[LessonProgressResponse] = None
