"""Подключение к базе данных"""
from sqlalchemy import BigInteger, Integer
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from config import settings

# Создаем движок для асинхронной работы
engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True
)

# Создаем фабрику сессий
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# Базовый класс для моделей
Base = declarative_base()

# SQLite автоинкрементирует только INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


async def init_models(bind=None) -> None:
    """Создать таблицы, если их еще нет"""
    # Импорт регистрирует все модели в Base.metadata
    import database.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_unchanged(session: AsyncSession) -> None:
    """Закрыть транзакцию, в которой условный UPDATE не затронул ни одной строки

    В отличие от rollback не помечает устаревшими объекты, уже загруженные
    в сессию (например, профиль из middleware).
    """
    await session.commit()
