"""
Миграции схемы

Файлы migrations/*.sql применяются по порядку имён, каждый в своей
транзакции. Применённые записываются в schema_migrations и
при следующем запуске пропускаются.
"""

import logging
from pathlib import Path
from typing import List

from practice.database.connection import get_pool

logger = logging.getLogger(__name__)

# Путь к папке с миграциями
MIGRATIONS_DIR = Path(__file__).resolve().parent.parent.parent / "migrations"

# Один запуск миграций на всю БД, даже если стартуют несколько процессов
MIGRATIONS_LOCK_ID = 7_320_001


def pending_migrations(sql_files: List[Path], applied: set) -> List[Path]:
    """Ещё не применённые файлы, в порядке имён"""
    return [path for path in sorted(sql_files) if path.name not in applied]


async def run_migrations(pool=None, migrations_dir: Path = MIGRATIONS_DIR) -> List[str]:
    """Применить новые миграции. Возвращает имена применённых файлов"""
    pool = pool or await get_pool()

    if not migrations_dir.exists():
        logger.warning(f"Папка миграций не найдена: {migrations_dir}")
        return []

    async with pool.acquire() as conn, conn.transaction():
        await conn.execute("SELECT pg_advisory_xact_lock($1)", MIGRATIONS_LOCK_ID)
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name TEXT PRIMARY KEY,
                applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )

        rows = await conn.fetch("SELECT name FROM schema_migrations")
        todo = pending_migrations(list(migrations_dir.glob("*.sql")), {row["name"] for row in rows})

        if not todo:
            logger.info("Новых миграций нет")
            return []

        for sql_file in todo:
            logger.info(f"Выполняю миграцию: {sql_file.name}")
            try:
                async with conn.transaction():
                    await conn.execute(sql_file.read_text(encoding="utf-8"))
                    await conn.execute(
                        "INSERT INTO schema_migrations (name) VALUES ($1)",
                        sql_file.name
                    )
            except Exception as e:
                logger.error(f"✗ Ошибка в {sql_file.name}: {e}")
                raise
            logger.info(f"✓ Миграция {sql_file.name} выполнена")

    return [sql_file.name for sql_file in todo]
