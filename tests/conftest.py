"""
Общие фикстуры: SQLite в памяти и готовые участники торгов.

DATABASE_URL задается до импорта config, чтобы модуль подключения
не требовал PostgreSQL.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"

from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from database.connection import init_models
from database.models.role import AppRole
from services.events import feed
from services.listing import create_listing, parse_listing_form
from services.moderation import approve
from services.roles import admin_cache, grant_role
from services.user import get_or_create_profile


@pytest.fixture
def now():
    """Фиксированное «сейчас» для детерминированных проверок времени"""
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_role_cache():
    admin_cache.clear()
    yield
    admin_cache.clear()


@pytest.fixture
def events():
    """Подписка на ленту изменений на время теста"""
    subscription = feed.subscribe()
    yield subscription
    subscription.close()


@pytest.fixture
def drain():
    """Забрать все накопившиеся события без ожидания"""
    def _drain(subscription):
        collected = []
        while not subscription.queue.empty():
            collected.append(subscription.queue.get_nowait())
        return collected
    return _drain


@pytest.fixture
def make_profile(session):
    async def _make(telegram_id, username=None, first_name=None):
        return await get_or_create_profile(session, telegram_id, username, first_name)
    return _make


@pytest.fixture
async def admin(session, make_profile):
    profile = await make_profile(1000, "moderator")
    await grant_role(session, profile.id, AppRole.ADMIN)
    return profile


@pytest.fixture
async def seller(make_profile):
    return await make_profile(2000, "seller")


@pytest.fixture
async def alice(make_profile):
    return await make_profile(3001, "alice")


@pytest.fixture
async def bob(make_profile):
    return await make_profile(3002, "bob")


@pytest.fixture
async def carol(make_profile):
    return await make_profile(3003, "carol")


@pytest.fixture
def make_listing(session, seller, now):
    """Создать лот продавца; по умолчанию отправляет на модерацию"""
    async def _make(submit=True, **overrides):
        data = {
            "title": "Часы «Полет»",
            "description": "Механические, 1970-е годы, на ходу",
            "condition": "good",
            "base_price": "100",
            "min_increment": "10",
            "custom_minutes": 60,
        }
        data.update(overrides)
        form = parse_listing_form(**data)
        return await create_listing(session, seller.id, form, submit=submit, now=now)
    return _make


@pytest.fixture
def make_live_auction(session, admin, make_listing, now):
    """Лот, прошедший модерацию: торги идут с момента now"""
    async def _make(**overrides):
        _, auction = await make_listing(**overrides)
        return await approve(session, auction.id, admin.id, now=now)
    return _make
