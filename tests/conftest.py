"""Test configuration and fixtures."""

import asyncio
from datetime import date
from typing import Dict, Generator, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from community_issues.db.base import Base
from community_issues.issues.cache import ListingCache
from community_issues.issues.lifecycle import IssueLifecycleEngine
from community_issues.issues.schemas import CallerContext, RawImage, Role
from community_issues.issues.uploads import ImageUploader, ImageUploadError

# In-memory SQLite shared by every connection of the test engine
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class FakeClock:
    """Callable 'today' that tests can move around."""

    def __init__(self, today: date):
        self.current = today

    def __call__(self) -> date:
        return self.current


class FakeUploader(ImageUploader):
    """Uploader returning predictable media references.

    ``fail`` lists file names that raise ``ImageUploadError``; ``delays``
    maps file names to seconds to sleep before answering.
    """

    def __init__(
        self,
        fail: Optional[List[str]] = None,
        delays: Optional[Dict[str, float]] = None,
    ):
        self.fail = set(fail or [])
        self.delays = delays or {}
        self.uploaded: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def upload(self, image: RawImage) -> str:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(image.filename, 0))
            if image.filename in self.fail:
                raise ImageUploadError(f"media service refused {image.filename}")
            url = f"https://media.test/{image.filename}"
            self.uploaded.append(url)
            return url
        finally:
            self.in_flight -= 1


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Fresh schema and session per test."""
    from community_issues.db import models  # noqa: F401

    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(date(2024, 3, 1))


@pytest.fixture
def cache() -> ListingCache:
    return ListingCache()


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest.fixture
def engine(db, cache, uploader, clock) -> IssueLifecycleEngine:
    return IssueLifecycleEngine(db, cache, uploader, upload_timeout=1.0, today=clock)


@pytest.fixture
def host() -> CallerContext:
    return CallerContext(role=Role.HOST, username="hank")


def resident(username: str) -> CallerContext:
    return CallerContext(role=Role.RESIDENT, username=username)


def image(name: str, content: bytes = b"\x89PNG...") -> RawImage:
    return RawImage(filename=name, content=content, content_type="image/png")
