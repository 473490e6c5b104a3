"""
Исключения конвейера практики
"""

from typing import Optional


class PracticeError(Exception):
    """Базовое исключение сервиса"""


class NotFound(PracticeError):
    """Урок, раздел или курс отсутствует (нарушена целостность данных)"""


class NotAuthorized(PracticeError):
    """У пользователя нет доступа к уроку"""


class ValidationError(PracticeError):
    """Некорректная структура запроса — отклоняется до любых изменений"""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []


class TransientStoreError(PracticeError):
    """Хранилище недоступно или транзакция конфликтует — можно повторить"""
