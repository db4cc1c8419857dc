"""
Pytest fixtures for consent-admin tests.
"""

import pytest

from consent_admin.consent.admin import ConsentAdmin
from consent_admin.consent.hasher import IdentifierHasher
from consent_admin.consent.memory_store import MemoryConsentStore
from consent_admin.consent.sqlite_store import SQLiteConsentStore
from consent_admin.shared.config import ConsentAdminSettings, HasherConfig, StoreConfig

TEST_SALT = "test-installation-salt"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer environment variables out of the tests."""
    for name in (
        "CONSENT_SECRET_SALT",
        "CONSENT_SCOPE_BY_SOURCE",
        "CONSENT_STORE_BACKEND",
        "CONSENT_STORE_DSN",
        "CONSENT_STORE_TABLE",
        "CONSENT_STORE_TIMEOUT",
        "CONSENT_ADMIN_USERID",
        "CONSENT_ADMIN_ALLOW_BRIDGE",
        "CONSENT_ADMIN_BACK_URL",
        "LOG_LEVEL",
        "LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "consent.sqlite"


@pytest.fixture
def sqlite_store(db_path):
    """SQLite consent store in a temporary directory."""
    store = SQLiteConsentStore(str(db_path))
    yield store
    store.close()


@pytest.fixture
def memory_store():
    return MemoryConsentStore()


@pytest.fixture(params=["sqlite", "memory"])
def store(request, tmp_path):
    """Each consent store backend in turn."""
    if request.param == "sqlite":
        backend = SQLiteConsentStore(str(tmp_path / "consent.sqlite"))
    else:
        backend = MemoryConsentStore()
    yield backend
    backend.close()


@pytest.fixture
def consent_admin(store):
    return ConsentAdmin(store)


@pytest.fixture
def hasher():
    return IdentifierHasher(TEST_SALT)


@pytest.fixture
def settings(tmp_path):
    """Settings for a bridging IdP with one remote and one hosted entity."""
    return ConsentAdminSettings(
        userid="eduPersonPrincipalName",
        allow_bridge=True,
        back_url="https://sp.example.org/",
        store=StoreConfig(backend="sqlite", dsn=str(tmp_path / "admin.sqlite")),
        hasher=HasherConfig(secret_salt=TEST_SALT),
        hosted_idp="https://hosted.example.org",
        metadata={
            "saml20-idp-remote": {"https://idp.example.org": {"name": "Remote IdP"}},
            "saml20-idp-hosted": {"https://hosted.example.org": {"name": "Hosted IdP"}},
        },
    )
