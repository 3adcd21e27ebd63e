"""Pytest configuration and fixtures"""
import os
import tempfile

import pytest

# Set test environment variables before the app module is imported
_db_dir = tempfile.mkdtemp(prefix="jockblock-test-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_db_dir, 'test.db')}")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("DOMAIN", "http://testserver")

from storage import MemoryStorage  # noqa: E402


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def flask_app():
    from app import app, engine
    from models import Base

    app.config.update(TESTING=True)
    yield app

    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture
def valid_contact():
    return {
        "name": "John Doe",
        "email": "john@example.com",
        "message": "This is a test message that is long enough.",
        "honeypot": "",
    }
