"""
Главная точка входа сервиса
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from practice.config import config
from practice.database.connection import get_pool, close_pool
from practice.database.migrations import run_migrations
from practice.errors import NotAuthorized, NotFound, PracticeError, TransientStoreError, ValidationError
from practice.handlers.instructor import router as instructor_router
from practice.handlers.student import router as student_router


# Настройка логирования
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, config.LOG_LEVEL, logging.INFO)
)
logger = logging.getLogger(__name__)


# Класс ошибки → HTTP-статус
ERROR_STATUSES = {
    NotAuthorized: 403,
    NotFound: 404,
    ValidationError: 422,
    TransientStoreError: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Подключение к БД и миграции при старте, закрытие пула при остановке"""
    await get_pool()
    await run_migrations()
    logger.info("База данных подключена, миграции выполнены")

    yield

    await close_pool()
    logger.info("Соединение с БД закрыто")


async def practice_error_handler(request: Request, exc: PracticeError):
    """Ошибки сервиса → JSON с соответствующим статусом"""
    status = next(
        (code for error_class, code in ERROR_STATUSES.items() if isinstance(exc, error_class)),
        500
    )
    content = {"error": str(exc)}
    if isinstance(exc, ValidationError) and exc.errors:
        content["details"] = [
            {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
            for error in exc.errors
        ]
    return JSONResponse(status_code=status, content=content)


async def unhandled_error_handler(request: Request, exc: Exception):
    """Всё непредвиденное — 500 без подробностей наружу"""
    logger.exception(f"Необработанная ошибка {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


def create_app(with_lifespan: bool = True) -> FastAPI:
    """Сборка приложения"""
    app = FastAPI(
        title="Typing Practice API",
        lifespan=lifespan if with_lifespan else None
    )

    app.add_exception_handler(PracticeError, practice_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(student_router, prefix="/api/student", tags=["Student"])
    app.include_router(instructor_router, prefix="/api/instructor", tags=["Instructor"])

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


def main():
    """Запуск сервиса"""

    # Проверка конфигурации
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Ошибка конфигурации: {error}")
        return

    logger.info("Сервис запущен!")

    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
