"""
Ограничение метрик сессии и выставление оценки
"""

import logging
import math
from dataclasses import dataclass

logger = logging.getLogger(__name__)


# Допустимые диапазоны метрик от клиента: (min, max)
METRIC_LIMITS = {
    "score": (0, 1000),
    "speed": (0, 200),        # WPM
    "accuracy": (0, 100),     # %
    "time_spent": (0, 3600),  # секунды
}

# Таблица оценок: (мин. точность, мин. скорость, звёзды), сверху вниз
STAR_THRESHOLDS = (
    (95, 40, 3),
    (85, 30, 2),
)
MIN_STARS = 1
COMPLETION_ACCURACY = 80


@dataclass(frozen=True)
class SessionMetrics:
    """Метрики сессии после ограничения"""
    score: float
    speed: float
    accuracy: float
    time_spent: int


@dataclass(frozen=True)
class Grade:
    stars: int
    completed: bool


def clamp_metric(name: str, value: float, minimum: float, maximum: float) -> float:
    """
    Привести значение к [minimum, maximum] без ошибки.
    NaN считается минимумом, бесконечности — границами.
    """
    if value is None or math.isnan(value):
        clamped = minimum
    else:
        clamped = min(max(value, minimum), maximum)

    if clamped != value:
        logger.debug(f"Метрика {name}={value} ограничена до {clamped}")
    return clamped


def clamp_session(score: float, speed: float, accuracy: float, time_spent: float) -> SessionMetrics:
    """Ограничить все метрики сессии по METRIC_LIMITS"""
    raw = {"score": score, "speed": speed, "accuracy": accuracy, "time_spent": time_spent}
    clamped = {
        name: clamp_metric(name, raw[name], *METRIC_LIMITS[name])
        for name in METRIC_LIMITS
    }
    # Время хранится в целых секундах
    clamped["time_spent"] = int(round(clamped["time_spent"]))
    return SessionMetrics(**clamped)


def grade(accuracy: float, speed: float) -> Grade:
    """Звёзды и факт прохождения по ограниченным точности и скорости"""
    stars = MIN_STARS
    for min_accuracy, min_speed, threshold_stars in STAR_THRESHOLDS:
        if accuracy >= min_accuracy and speed >= min_speed:
            stars = threshold_stars
            break

    return Grade(stars=stars, completed=accuracy >= COMPLETION_ACCURACY)
