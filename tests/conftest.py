"""Shared fixtures: an app on a throwaway SQLite file."""

import base64

import pytest

from app import create_app
from models import db

ADMIN_USER = "admin"
ADMIN_PASSWORD = "s3cret"


@pytest.fixture
def make_app(tmp_path):
    """Factory for apps on the same database file, with config overrides."""
    apps = []

    def _make(**overrides):
        config = {
            "TESTING": True,
            "DATABASE_PATH": str(tmp_path / "subbed.db"),
            "ADMIN_CREDENTIALS": f"{ADMIN_USER}:{ADMIN_PASSWORD}",
            "REQUEST_TIMEOUT": 10,
        }
        config.update(overrides)
        app = create_app(config)
        apps.append(app)
        return app

    yield _make
    for app in apps:
        with app.app_context():
            db.engine.dispose()


@pytest.fixture
def app(make_app):
    """Application bound to a fresh database file."""
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def catalog(app):
    """VideoCatalog used inside an application context."""
    with app.app_context():
        yield app.extensions["subbed.catalog"]


@pytest.fixture
def auth_headers():
    token = base64.b64encode(f"{ADMIN_USER}:{ADMIN_PASSWORD}".encode()).decode()
    return {"Authorization": f"Basic {token}"}
