"""
Pytest configuration and fixtures
"""
import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Never talk to a real database or LLM from unit tests
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("OPENAI_API_KEY", None)

from tavlo.core import llm_client
from tavlo.core.cache import reference_cache
from tavlo.core.config import get_settings
from tavlo.models import Base, User
from tavlo.services.badge_service import BadgeService
from tavlo.services.domains import seed_domains


@pytest.fixture(autouse=True)
def reset_caches():
    """Settings and reference data are cached process-wide; ids differ per test database"""
    get_settings.cache_clear()
    reference_cache.clear()
    yield
    get_settings.cache_clear()
    reference_cache.clear()
    llm_client._llm_client = None


@pytest.fixture(scope="function")
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(session_factory) -> Session:
    """Create a database session for testing"""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def user(db: Session) -> User:
    user = User(clerk_id="user_test_1", email="reader@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db: Session) -> User:
    user = User(clerk_id="user_test_2", email="other@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def seeded(db: Session):
    """Default domains and badges"""
    seed_domains(db)
    BadgeService(db).seed_badges()
    return db


@pytest.fixture(scope="function")
def app():
    from main import app as fastapi_app
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client(app, db: Session, user: User):
    """Test client authenticated as `user`, sharing the test database session"""
    from fastapi.testclient import TestClient

    from tavlo.core.auth import get_current_user
    from tavlo.core.database import get_db

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: user
    yield TestClient(app)


@pytest.fixture(scope="function")
def anon_client(app, db: Session):
    """Test client without an authenticated user"""
    from fastapi.testclient import TestClient

    from tavlo.core.database import get_db

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)


@pytest.fixture
def stub_pipeline(app, db: Session):
    """
    Route pipeline with a canned extractor and summarizer

    Tweak `stub_pipeline.extractor.extract.return_value` or
    `stub_pipeline.summarizer.summarize.return_value` per test.
    """
    from unittest.mock import AsyncMock

    from tavlo.api.routes.items import get_pipeline_service
    from tavlo.services.extractor import ExtractedContent
    from tavlo.services.pipeline import PipelineService
    from tavlo.services.summarizer import Summary

    extractor = AsyncMock()
    extractor.extract.return_value = ExtractedContent(
        title="Consensus explained",
        content="Distributed consensus lets a group of machines agree on a single value. " * 3,
        source="example.com",
        author="Ada Lovelace",
    )
    summarizer = AsyncMock()
    summarizer.summarize.return_value = Summary(
        title="How consensus works",
        summary=["Raft elects a leader and replicates a log.", "Entries commit once a majority acknowledges."],
        tags=["python", "distributed systems"],
        type="learn",
        category="tech",
    )
    pipeline = PipelineService(db, extractor=extractor, summarizer=summarizer)
    app.dependency_overrides[get_pipeline_service] = lambda: pipeline
    return pipeline
