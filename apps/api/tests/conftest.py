"""
Pytest configuration and fixtures

Tests run against an in-memory Supabase fake (fixtures/fake_supabase.py),
so nothing here needs a live project or network access.
"""
import os
import sys

# Settings are read at import time; pin a predictable environment first.
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.pop("ANTHROPIC_API_KEY", None)
os.environ.pop("SUPABASE_JWT_SECRET", None)
os.environ.pop("SENTRY_DSN", None)

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from fastapi.testclient import TestClient

from core.auth import get_current_user
from core.supabase import get_supabase
from fixtures.fake_supabase import FakeSupabase
from models import AuthenticatedUser

COACH_ID = "coach-1"
PLAYER_ID = "player-1"
OTHER_PLAYER_ID = "player-2"


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def coach_user():
    return AuthenticatedUser(id=COACH_ID, email="coach@example.com")


@pytest.fixture
def player_user():
    return AuthenticatedUser(id=PLAYER_ID, email="player@example.com")


@pytest.fixture
def api_client(fake_db, coach_user):
    """TestClient signed in as the coach, backed by the fake Supabase client."""
    from main import app

    async def _override_supabase():
        return fake_db

    app.dependency_overrides[get_supabase] = _override_supabase
    app.dependency_overrides[get_current_user] = lambda: coach_user
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
    app.dependency_overrides.pop(get_supabase, None)
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
def act_as():
    """Swap the signed-in user for the rest of a test."""
    from main import app

    def _act_as(user: AuthenticatedUser):
        app.dependency_overrides[get_current_user] = lambda: user

    return _act_as
