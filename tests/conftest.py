"""Pytest configuration and shared fixtures."""
import pytest

from authenticator.models import Algorithm, VaultEntry
from backend.app import create_app

# RFC 6238 Appendix B keys (ASCII "1234567890" repeated to the digest size)
RFC_SECRET_SHA1 = b"12345678901234567890"
RFC_SECRET_SHA256 = b"12345678901234567890123456789012"
RFC_SECRET_SHA512 = b"1234567890" * 6 + b"1234"

# Base32 of RFC_SECRET_SHA1
RFC_SECRET_SHA1_B32 = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


def make_entry(issuer="GitHub", account="me", secret=RFC_SECRET_SHA1,
               algorithm=Algorithm.SHA1, digits=6, period=30) -> VaultEntry:
    return VaultEntry(issuer=issuer, account=account, secret=secret,
                      algorithm=algorithm, digits=digits, period=period)


@pytest.fixture
def entry() -> VaultEntry:
    return make_entry()


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "vault.db")


@pytest.fixture
def app(db_path):
    app = create_app(db_path=db_path)
    app.config.update(TESTING=True, CLOCK=lambda: 59)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def unlocked_client(client):
    response = client.post("/api/vault/unlock", json={"passphrase": "hunter2"})
    assert response.status_code == 200
    return client
