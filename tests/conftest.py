"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

import os
import tempfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tests.test_constants import TEST_EXTENSION_API_KEY, TEST_INTERNAL_JOB_TOKEN

# Force a throwaway SQLite test DB when pytest runs; don't inherit from .env
_test_db_dir = tempfile.mkdtemp(prefix="nullfake_test_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_test_db_dir, 'nullfake_test.db')}"
os.environ.setdefault("INTERNAL_JOB_TOKEN", TEST_INTERNAL_JOB_TOKEN)
os.environ.setdefault("EXTENSION_API_KEY", TEST_EXTENSION_API_KEY)
os.environ["EXTENSION_REQUIRE_API_KEY"] = "true"
# No real provider or scraper credentials in tests
os.environ["OPENAI_API_KEY"] = ""
os.environ["DEEPSEEK_API_KEY"] = ""
os.environ["BRIGHTDATA_API_KEY"] = ""


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client."""
    from app.main import app

    return TestClient(app)


@pytest.fixture
def client_with_db(db: Session) -> TestClient:
    """TestClient with get_db overridden to use the test db session (for integration tests)."""
    from app.db.session import get_db
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    c = TestClient(app)
    yield c
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture(autouse=True)
def _clear_provider_cache() -> None:
    """Providers are cached per process; start every test without them."""
    from app.llm.router import clear_provider_cache

    clear_provider_cache()
    yield
    clear_provider_cache()


@pytest.fixture(scope="session")
def _ensure_migrations() -> None:
    """Run migrations once per test session."""
    import subprocess
    import sys

    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    result = subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        cwd=project_root,
        capture_output=True,
        text=True,
        timeout=60,
        env=os.environ.copy(),
    )
    assert result.returncode == 0, f"alembic upgrade head failed: {result.stderr}"


@pytest.fixture
def db(_ensure_migrations: None) -> Session:
    """Database session. Code under test commits, so every table is emptied afterwards."""
    from app.db.session import Base, SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()


@pytest.fixture
def make_reviews():
    """Factory for stored-review dicts: ``make_reviews(3)`` or ``make_reviews(ratings=[5, 1])``."""

    def _make(count: int | None = None, ratings: list[int] | None = None) -> list[dict]:
        ratings = ratings if ratings is not None else [5] * (count or 0)
        return [
            {
                "id": f"R{i + 1}",
                "rating": rating,
                "title": f"Review {i + 1}",
                "text": f"Used this for {i + 1} weeks, works as described.",
                "author": f"Customer {i + 1}",
                "meta_data": {"verified_purchase": i % 2 == 0},
            }
            for i, rating in enumerate(ratings)
        ]

    return _make


@pytest.fixture
def fake_manager():
    """Stand-in LLMServiceManager returning fixed scores keyed by review id."""
    from unittest.mock import MagicMock

    def _make(scores: dict[str, int], provider: str = "OpenAI-gpt-4o-mini"):
        manager = MagicMock()
        result = {
            "detailed_scores": {
                rid: {"score": score, "label": "fake" if score >= 80 else "genuine"}
                for rid, score in scores.items()
            },
            "analysis_provider": provider,
            "total_cost": 0.0001,
        }
        manager.analyze_reviews.return_value = (result, {})
        return manager

    return _make
