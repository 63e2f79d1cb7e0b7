import pytest
from unittest.mock import patch
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

from app.main import app
from app.config import settings
from app.utils.github_auth import GitHubSession


@pytest.fixture(scope="session", autouse=True)
def override_settings():
    """Override settings for testing."""
    with patch.object(settings, "rule_suite_settle_seconds", 0.0):
        with patch.object(settings, "rule_suite_poll_attempts", 1):
            with patch.object(settings, "check_organization_rulesets", False):
                yield


@pytest.fixture(scope="session")
def private_key_pem() -> str:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def github_session():
    return GitHubSession(token="ghs_test_token", api_url="https://api.github.com")


@pytest.fixture
def client():
    return TestClient(app)
