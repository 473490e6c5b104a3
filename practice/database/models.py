"""
Модели данных (dataclasses)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass
class Lesson:
    """Урок: текст и авторские настройки по умолчанию"""
    id: int
    section_id: int
    name: str
    order: int
    text: str
    target_score: Optional[int]
    time_limit: Optional[int]
    goal_speed: Optional[int]
    min_speed: Optional[int]
    min_accuracy: Optional[int]
    disable_backspace: bool
    block_on_error: bool
    instructions: Optional[Any]


@dataclass
class Section:
    """Раздел курса"""
    id: int
    course_id: int
    name: str
    order: int


@dataclass
class ClassSettings:
    """Настройки класса. None — поле не задано и не перекрывает урок"""
    class_id: int
    disable_backspace: Optional[bool] = None
    block_on_error: Optional[bool] = None
    lock_virtual_keyboard: Optional[bool] = None
    lock_language: Optional[bool] = None
    lock_hands: Optional[bool] = None
    sound_fx: Optional[bool] = None
    voice_over: Optional[bool] = None
    theme: Optional[str] = None
    font: Optional[str] = None
    show_replay_button: Optional[bool] = None
    show_lowercase_letters: Optional[bool] = None


@dataclass
class ClassCourseSettings:
    """Настройки пары (класс, курс)"""
    class_id: int
    course_id: int
    has_prerequisite: Optional[bool] = None
    speed_adjustment: Optional[int] = None       # дельта к скорости
    accuracy_requirement: Optional[int] = None   # абсолютный порог точности
    lesson_progress_limit: Optional[str] = None  # sequential, all
    has_placement_test: Optional[bool] = None


@dataclass
class LessonProgress:
    """Прогресс ученика по уроку (лучшие значения + накопленные)"""
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
    last_attempt_at: Optional[datetime]
    completed_at: Optional[datetime]


@dataclass
class LetterStatistic:
    """Накопленная статистика по букве"""
    id: int
    user_id: int
    letter: str
    correct_count: int
    incorrect_count: int
    total_time_ms: int
    common_errors: dict[str, int] = field(default_factory=dict)
    last_practiced_at: Optional[datetime] = None


@dataclass
class TypingPattern:
    """Повторяющаяся замена: ожидали from_char, набрали to_char"""
    id: int
    user_id: int
    from_char: str
    to_char: str
    pattern_type: str
    occurrences: int
    avg_speed: float
    avg_accuracy: float
    last_occurrence: Optional[datetime]
