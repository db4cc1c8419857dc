"""
Tests for the consent administration view controller.
"""

import logging

import pytest

from consent_admin.consent.hasher import IdentifierHasher
from consent_admin.controller import AdminController, AdminErrorView, AdminView
from consent_admin.identity.source import AuthenticatedIdentity
from consent_admin.shared.config import ConsentAdminSettings, HasherConfig
from consent_admin.shared.exceptions import (
    ConfigurationError,
    MetadataNotFoundError,
    NotAuthenticatedError,
)
from consent_admin.shared.logging import StructuredFormatter

REMOTE_SOURCE = "saml20-idp-remote|https://idp.example.org"
HOSTED_SOURCE = "saml20-idp-hosted|https://hosted.example.org"


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, StructuredFormatter):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture
def controller(settings):
    controller = AdminController.from_settings(settings)
    yield controller
    controller.store.close()


@pytest.fixture
def alice():
    return AuthenticatedIdentity(
        attributes={"eduPersonPrincipalName": ["alice@example.org"]},
        remote_idp="https://idp.example.org",
    )


def test_overview_counts(controller, alice):
    hashed = controller.hasher.hash("alice@example.org", REMOTE_SOURCE)
    controller.store.save_consent(hashed, "sp1", "fp1")
    controller.store.save_consent(hashed, "sp1", "fp2")
    controller.store.save_consent(hashed, "sp2", "fp1")

    view = controller.admin(alice)

    assert isinstance(view, AdminView)
    assert view.consents == 3
    assert view.consent_services == 2
    assert view.removed == -1
    assert view.user_id == "alice@example.org"
    assert view.back_url == "https://sp.example.org/"


def test_withdraw_request(controller, alice):
    hashed = controller.hasher.hash("alice@example.org", REMOTE_SOURCE)
    controller.store.save_consent(hashed, "sp1", "fp1")
    controller.store.save_consent(hashed, "sp2", "fp1")

    view = controller.admin(alice, withdraw_requested=True)

    assert view.removed == 2
    assert view.consents == 0
    assert view.consent_services == 0


def test_consents_scoped_to_remote_idp(controller, alice):
    """Consents recorded against the hosted IdP are not shown for a bridged login."""
    hashed = controller.hasher.hash("alice@example.org", HOSTED_SOURCE)
    controller.store.save_consent(hashed, "sp1", "fp1")

    assert controller.admin(alice).consents == 0

    controller.settings.allow_bridge = False
    assert controller.admin(alice).consents == 1


def test_missing_user_attribute_returns_error_view(controller, caplog):
    identity = AuthenticatedIdentity(attributes={"mail": ["alice@example.org"]})

    with caplog.at_level("WARNING"):
        view = controller.admin(identity)

    assert isinstance(view, AdminErrorView)
    assert view.user_id_attribute == "eduPersonPrincipalName"
    assert view.back_url == "https://sp.example.org/"
    assert "Missing 'eduPersonPrincipalName'" in caplog.text


def test_missing_back_url_is_empty(settings):
    settings.back_url = None
    controller = AdminController.from_settings(settings)

    view = controller.admin(AuthenticatedIdentity(attributes={}))
    assert view.back_url == ""


def test_unauthenticated(controller):
    with pytest.raises(NotAuthenticatedError):
        controller.admin(None)


def test_unknown_idp(controller):
    identity = AuthenticatedIdentity(
        attributes={"eduPersonPrincipalName": ["alice@example.org"]},
        remote_idp="https://unknown.example.org",
    )

    with pytest.raises(MetadataNotFoundError):
        controller.admin(identity)


def test_raw_user_id_not_logged(controller, alice, caplog):
    with caplog.at_level("DEBUG"):
        controller.admin(alice, withdraw_requested=True)

    hashed = controller.hasher.hash("alice@example.org", REMOTE_SOURCE)
    assert "alice@example.org" not in caplog.text
    assert any(getattr(r, "hashed_user_id", None) == hashed for r in caplog.records)


def test_from_settings_requires_salt(tmp_path):
    settings = ConsentAdminSettings(hasher=HasherConfig())

    with pytest.raises(ConfigurationError):
        AdminController.from_settings(settings)


def test_explicit_collaborators(settings, memory_store):
    from consent_admin.identity.metadata import StaticMetadataHandler

    controller = AdminController(
        settings,
        memory_store,
        IdentifierHasher("another-installation"),
        StaticMetadataHandler.from_settings(settings),
    )

    view = controller.admin(AuthenticatedIdentity(
        attributes={"eduPersonPrincipalName": ["bob@example.org"]}
    ))
    assert view.consents == 0


def test_from_settings_enables_structured_logging(settings, tmp_path):
    settings.log_level = "DEBUG"
    settings.log_file = tmp_path / "logs" / "consent_admin.log"

    controller = AdminController.from_settings(settings)
    controller.admin(AuthenticatedIdentity(
        attributes={"eduPersonPrincipalName": ["alice@example.org"]},
        remote_idp="https://idp.example.org",
    ))

    root = logging.getLogger()
    structured = [h for h in root.handlers if isinstance(h.formatter, StructuredFormatter)]
    assert structured
    assert root.level == logging.DEBUG

    for handler in structured:
        handler.flush()
    log_text = settings.log_file.read_text(encoding="utf-8")
    assert '"hashed_user_id"' in log_text
    assert "alice@example.org" not in log_text
