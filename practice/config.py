"""
Конфигурация сервиса — загрузка переменных окружения
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Загружаем .env из корня проекта
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Конфигурация приложения"""

    # --- Database ---
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    DB_POOL_MIN_SIZE: int = int(os.getenv("DB_POOL_MIN_SIZE", "2"))
    DB_POOL_MAX_SIZE: int = int(os.getenv("DB_POOL_MAX_SIZE", "10"))
    DB_COMMAND_TIMEOUT: float = float(os.getenv("DB_COMMAND_TIMEOUT", "10"))

    # --- HTTP ---
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # --- Settings ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    # Повторная отправка сессии с тем же submissionId не учитывается дважды
    DEDUPLICATE_SUBMISSIONS: bool = _env_bool("DEDUPLICATE_SUBMISSIONS", "true")

    @classmethod
    def validate(cls) -> list[str]:
        """Проверка обязательных переменных"""
        errors = []

        if not cls.DATABASE_URL:
            errors.append("DATABASE_URL не задан")
        if cls.DB_POOL_MIN_SIZE < 1:
            errors.append("DB_POOL_MIN_SIZE должен быть >= 1")
        if cls.DB_POOL_MAX_SIZE < cls.DB_POOL_MIN_SIZE:
            errors.append("DB_POOL_MAX_SIZE меньше DB_POOL_MIN_SIZE")
        if cls.LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"Неизвестный LOG_LEVEL: {cls.LOG_LEVEL}")

        return errors


# Синглтон конфигурации
config = Config()
