"""
Shared fixtures for the Swipematch tests.
Every test gets a fresh in-memory SQLite database.
"""

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("UPSTASH_REDIS_URL", "https://redis.invalid")
os.environ.setdefault("UPSTASH_REDIS_TOKEN", "test-token")
os.environ.setdefault("DEBUG", "false")

from datetime import date, datetime, timedelta
import uuid

import pytest
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from swipematch.db.session import Base, enable_sqlite_savepoints
from swipematch.models import (
    User,
    Profile,
    Interest,
    Preference,
    Match,
    Message,
    user_interests,
)


TODAY = date(2024, 6, 15)
START = datetime(2024, 6, 15, 12, 0, 0)


def birth_date_for(age: int) -> date:
    """Birth date giving `age` on TODAY (birthday already passed this year)."""
    return date(TODAY.year - age, 1, 1)


def km_north(km: float) -> float:
    """Latitude offset in degrees for a distance along a meridian."""
    return km / 111.19492664455873


class FixedClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class Factory:
    """Creates users, profiles, interests, preferences and matches."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._interests = {}
        self._count = 0

    async def user(
        self,
        username: str = None,
        gender: str = "female",
        age: int = 30,
        birth_date: date = None,
        city: str = None,
        is_active: bool = True,
        latitude: float = None,
        longitude: float = None,
        interests=(),
        user_id: uuid.UUID = None,
    ) -> User:
        self._count += 1
        user = User(
            id=user_id or uuid.uuid4(),
            username=username or f"user{self._count}",
            gender=gender,
            birth_date=birth_date or birth_date_for(age),
            city=city,
            is_active=is_active,
        )
        self.db.add(user)
        self.db.add(
            Profile(
                id=uuid.uuid4(),
                user_id=user.id,
                bio=f"Hi, I am {user.username}",
                latitude=latitude,
                longitude=longitude,
            )
        )
        await self.db.flush()

        for name in interests:
            interest = await self.interest(name)
            await self.db.execute(
                insert(user_interests).values(user_id=user.id, interest_id=interest.id)
            )

        await self.db.commit()
        return user

    async def interest(self, name: str) -> Interest:
        if name not in self._interests:
            interest = Interest(name=name, category="general")
            self.db.add(interest)
            await self.db.flush()
            self._interests[name] = interest
        return self._interests[name]

    async def preference(
        self,
        user: User,
        preferred_gender: str = "female",
        min_age: int = 25,
        max_age: int = 35,
        max_distance_km: int = 50,
    ) -> Preference:
        preference = Preference(
            id=uuid.uuid4(),
            user_id=user.id,
            preferred_gender=preferred_gender,
            min_age=min_age,
            max_age=max_age,
            max_distance_km=max_distance_km,
        )
        self.db.add(preference)
        await self.db.commit()
        return preference

    async def match(self, user_a: User, user_b: User, matched_at: datetime = START, is_active: bool = True) -> Match:
        match = Match.between(user_a.id, user_b.id, matched_at=matched_at)
        match.is_active = is_active
        if not is_active:
            match.unmatched_at = matched_at
        self.db.add(match)
        await self.db.commit()
        return match

    async def message(self, match: Match, sender: User, content: str, sent_at: datetime, is_read: bool = False) -> Message:
        message = Message(
            id=uuid.uuid4(),
            match_id=match.id,
            sender_id=sender.id,
            content=content,
            is_read=is_read,
            sent_at=sent_at,
        )
        self.db.add(message)
        await self.db.commit()
        return message


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def clock():
    return FixedClock()


async def count_rows(db: AsyncSession, model) -> int:
    result = await db.execute(select(model))
    return len(result.scalars().all())
