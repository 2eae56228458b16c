"""
Pytest configuration and fixtures for backend tests.

The app talks to in-memory identity and record-store adapters instead of
Supabase; tokens are real HS256 JWTs signed with TEST_JWT_SECRET.
"""
import os

import pytest
from cryptography.fernet import Fernet

TEST_JWT_SECRET = "test-jwt-secret-for-clothtracker-tests"

# Settings must be in place before the app module is imported
for name in ("SUPABASE_JWT_SECRET_NAME", "ENCRYPTION_KEY_NAME", "SESSION_SECRET_KEY_NAME", "ENVIRONMENT"):
    os.environ.pop(name, None)
os.environ["SUPABASE_JWT_SECRET"] = TEST_JWT_SECRET
os.environ["ENCRYPTION_KEY"] = Fernet.generate_key().decode()
os.environ["SESSION_SECRET_KEY"] = "test-session-secret"
os.environ["SITE_URL"] = "http://testserver"

from fastapi.testclient import TestClient  # noqa: E402

from app.auth.dependencies import get_identity_service, get_record_store  # noqa: E402
from app.connectors.fake import FakeIdentityService, FakeRecordStore  # noqa: E402
from app.main import app  # noqa: E402

USER_EMAIL = "jane@example.com"
USER_PASSWORD = "secret123"
USER_NAME = "Jane Doe"


@pytest.fixture
def identity():
    return FakeIdentityService(jwt_secret=TEST_JWT_SECRET)


@pytest.fixture
def store():
    return FakeRecordStore()


@pytest.fixture
def client(identity, store):
    app.dependency_overrides[get_identity_service] = lambda: identity
    app.dependency_overrides[get_record_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def user(identity):
    """A confirmed account."""
    return identity.add_user(USER_EMAIL, USER_PASSWORD, full_name=USER_NAME)


@pytest.fixture
def session(identity, user):
    """An AuthSession for `user`, issued by the fake identity service."""
    return identity.sign_in_with_password(USER_EMAIL, USER_PASSWORD)


@pytest.fixture
def signed_in_client(client, user):
    """A client whose cookie session holds the user's tokens (signed in through the password flow)."""
    response = client.post(
        "/auth/password/login",
        json={"email": USER_EMAIL, "password": USER_PASSWORD},
    )
    assert response.status_code == 200
    return client
