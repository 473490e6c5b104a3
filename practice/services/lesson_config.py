"""
Итоговая конфигурация урока для ученика

Слои применяются строго по порядку, каждый следующий перекрывает
только те поля, которые он явно задаёт:
    1. настройки урока (база для всех полей)
    2. настройки пары (класс, курс)
    3. настройки класса
    4. режимы доступности ученика (в порядке профиля)
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Optional, Sequence

from practice.database import queries as db
from practice.database.connection import store_errors
from practice.database.models import Lesson, ClassSettings, ClassCourseSettings
from practice.errors import NotAuthorized
from practice.roles import Identity
from practice.services.access import require_access

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectiveConfig:
    """Поведение клиента на время попытки. Не хранится, считается на каждый запрос"""
    # Поведение ввода
    disable_backspace: bool
    block_on_error: bool
    lock_virtual_keyboard: bool = False
    lock_language: bool = False
    lock_hands: bool = False
    # Оформление
    sound_fx: bool = True
    voice_over: bool = False
    theme: str = "default"
    font: str = "default"
    show_replay_button: bool = True
    show_lowercase_letters: bool = False
    # Пороги
    speed_adjustment: int = 0
    accuracy_requirement: int = 0
    # Цели урока
    target_score: Optional[int] = None
    time_limit: Optional[int] = None
    goal_speed: Optional[int] = None
    min_speed: Optional[int] = None
    min_accuracy: Optional[int] = None
    instructions: Optional[Any] = None
    # Доступность
    high_contrast: bool = False
    font_size: str = "default"
    virtual_keyboard_guide: str = "none"
    closed_captioning: bool = False
    games: bool = True
    anchoring_lessons: bool = True


# Режим доступности → частичный патч конфигурации
ACCESSIBILITY_EFFECTS = {
    "blind": {
        "high_contrast": True,
        "font_size": "extra-large",
        "voice_over": True,
        "block_on_error": True,
        "disable_backspace": True,
        "games": False,
        "anchoring_lessons": False,
    },
    "low_vision": {
        "font_size": "large",
        "voice_over": True,
        "games": False,
    },
    "dyslexic": {
        "font_size": "large",
        "font": "dyslexic",
    },
    "right_hand_only": {
        "virtual_keyboard_guide": "right",
        "anchoring_lessons": False,
    },
    "left_hand_only": {
        "virtual_keyboard_guide": "left",
        "anchoring_lessons": False,
    },
    "hard_of_hearing": {
        "closed_captioning": True,
    },
}

# Поля класса, перекрывающие конфигурацию, если не None
CLASS_TOGGLE_FIELDS = (
    "disable_backspace",
    "block_on_error",
    "lock_virtual_keyboard",
    "lock_language",
    "lock_hands",
    "sound_fx",
    "voice_over",
    "show_replay_button",
    "show_lowercase_letters",
)
# Строковые поля класса перекрывают только непустым значением
CLASS_TEXT_FIELDS = ("theme", "font")


def lesson_defaults(lesson: Lesson) -> EffectiveConfig:
    """Слой 1: все поля из урока, остальное — нейтральные значения"""
    return EffectiveConfig(
        disable_backspace=bool(lesson.disable_backspace),
        block_on_error=bool(lesson.block_on_error),
        target_score=lesson.target_score,
        time_limit=lesson.time_limit,
        goal_speed=lesson.goal_speed,
        min_speed=lesson.min_speed,
        min_accuracy=lesson.min_accuracy,
        instructions=lesson.instructions,
    )


def apply_class_course_settings(config: EffectiveConfig, settings: ClassCourseSettings) -> EffectiveConfig:
    """Слой 2: скорость — дельта к текущему значению, точность — замена"""
    patch = {}
    if settings.speed_adjustment is not None:
        patch["speed_adjustment"] = config.speed_adjustment + settings.speed_adjustment
    if settings.accuracy_requirement is not None:
        patch["accuracy_requirement"] = settings.accuracy_requirement
    return replace(config, **patch)


def apply_class_settings(config: EffectiveConfig, settings: ClassSettings) -> EffectiveConfig:
    """Слой 3: явно заданные поля класса"""
    patch = {
        name: getattr(settings, name)
        for name in CLASS_TOGGLE_FIELDS
        if getattr(settings, name) is not None
    }
    patch.update({
        name: getattr(settings, name)
        for name in CLASS_TEXT_FIELDS
        if getattr(settings, name)
    })
    return replace(config, **patch)


def apply_accessibility(config: EffectiveConfig, modes: Iterable[str]) -> EffectiveConfig:
    """Слой 4: режимы по порядку профиля, последний записавший поле выигрывает"""
    for mode in modes:
        effect = ACCESSIBILITY_EFFECTS.get(mode)
        if effect is None:
            logger.debug(f"Неизвестный режим доступности: {mode}")
            continue
        config = replace(config, **effect)
    return config


def resolve(
    lesson: Lesson,
    class_settings: Optional[ClassSettings] = None,
    class_course_settings: Optional[ClassCourseSettings] = None,
    accessibility_modes: Sequence[str] = (),
) -> EffectiveConfig:
    """Чистая функция: одинаковые входы — одинаковый результат"""
    layers: list[tuple[Callable[[EffectiveConfig, Any], EffectiveConfig], Any]] = [
        (apply_class_course_settings, class_course_settings),
        (apply_class_settings, class_settings),
        (apply_accessibility, accessibility_modes),
    ]

    config = lesson_defaults(lesson)
    for apply_layer, layer in layers:
        if layer is not None:
            config = apply_layer(config, layer)
    return config


async def resolve_for_student(
    identity: Identity,
    lesson_id: int,
    class_id: Optional[int] = None
) -> EffectiveConfig:
    """
    Конфигурация урока для текущего ученика.
    Без class_id берётся класс с наименьшим id среди дающих доступ.
    """
    access = await require_access(identity, lesson_id)

    if class_id is None:
        class_id = access.primary_class_id
    elif class_id not in access.class_ids:
        logger.warning(
            f"Ученик {identity.user_id} запросил настройки чужого класса {class_id}"
        )
        raise NotAuthorized("Not authorized to access this class")

    async with store_errors():
        lesson = await db.get_lesson(lesson_id)
        if not lesson:
            raise NotAuthorized("Not authorized to access this lesson")
        class_settings = await db.get_class_settings(class_id)
        class_course_settings = await db.get_class_course_settings(class_id, access.course_id)
        modes = await db.get_accessibility_modes(identity.user_id)

    return resolve(lesson, class_settings, class_course_settings, modes)
