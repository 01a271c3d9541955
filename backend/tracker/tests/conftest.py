"""
Shared fixtures: an in-memory database and a test client wired to it.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tracker.api.dependencies import get_image_storage
from tracker.db.base import Base
from tracker.db.session import get_db
from tracker.main import app
from tracker.services.image_service import ImageStorage
import tracker.models  # noqa: F401


@pytest.fixture(scope="function")
def db():
    """Create a fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture(scope="function")
def client(db, upload_dir):
    """Create a test client with dependency overrides."""

    def get_test_db():
        yield db

    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_image_storage] = lambda: ImageStorage(str(upload_dir))
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def session_payload():
    """A complete session as the API expects it."""
    return {
        "date": "2024-03-01",
        "time": "20:00",
        "location": "Home, Austin, TX",
        "who_with": "Sam; Riley",
        "vessel_category": "Pipe",
        "vessel": "Glass Spoon",
        "strain_name": "Gelato",
        "strain_type": "Hybrid",
        "thc_percentage": 21.5,
        "quantity": {"amount": 2, "unit": "bowl size", "type": "size_category"},
    }
