"""
Consent administration view: wires configuration, identity, hashing and the
store together and returns the data the page is rendered from.
"""

import logging
from typing import Optional, Union

from pydantic import BaseModel

from consent_admin.consent.admin import ConsentAdmin
from consent_admin.consent.hasher import IdentifierHasher
from consent_admin.consent.store import ConsentStore, parse_store_config
from consent_admin.identity.metadata import MetadataHandler, StaticMetadataHandler
from consent_admin.identity.source import AuthenticatedIdentity, resolve_source, select_user_id
from consent_admin.shared.config import ConsentAdminSettings, get_settings
from consent_admin.shared.exceptions import MissingUserAttributeError, NotAuthenticatedError
from consent_admin.shared.logging import get_logger, log_with_context, setup_logging

logger = get_logger(__name__)


class AdminView(BaseModel):
    """Data for the consent overview page."""

    consent_services: int
    consents: int
    removed: int
    back_url: str
    user_id: str


class AdminErrorView(BaseModel):
    """Data for the page shown when the user-id attribute is missing."""

    back_url: str
    user_id_attribute: str


class AdminController:
    """Serves the consent administration view."""

    def __init__(
        self,
        settings: ConsentAdminSettings,
        store: ConsentStore,
        hasher: IdentifierHasher,
        metadata: MetadataHandler
    ):
        self.settings = settings
        self.store = store
        self.hasher = hasher
        self.metadata = metadata
        self.consent_admin = ConsentAdmin(store)

    @classmethod
    def from_settings(cls, settings: Optional[ConsentAdminSettings] = None) -> "AdminController":
        """
        Build every collaborator from configuration and switch on structured logging.

        Raises:
            ConfigurationError if the salt or store descriptor is unusable
        """
        settings = settings or get_settings()
        setup_logging(settings.log_level, settings.log_file)
        hasher = IdentifierHasher.from_settings(settings)
        store = parse_store_config(settings.store)
        return cls(settings, store, hasher, StaticMetadataHandler.from_settings(settings))

    def admin(
        self,
        identity: Optional[AuthenticatedIdentity],
        withdraw_requested: bool = False
    ) -> Union[AdminView, AdminErrorView]:
        """
        Summarise (and optionally withdraw) the current user's consents.

        Raises:
            NotAuthenticatedError if there is no authenticated identity
            MetadataNotFoundError if the IdP metadata is missing
            StorageError from the consent store
        """
        if identity is None:
            raise NotAuthenticatedError("Consent administration requires an authenticated user")

        back_url = self.settings.back_url or ""
        attribute_name = self.settings.userid

        try:
            user_id = select_user_id(identity.attributes, attribute_name)
        except MissingUserAttributeError as e:
            logger.warning(f"ConsentAdmin: {e}")
            return AdminErrorView(back_url=back_url, user_id_attribute=attribute_name)

        source = resolve_source(self.metadata, identity.remote_idp, self.settings.allow_bridge)
        hashed_user_id = self.hasher.hash(user_id, source)
        log_with_context(
            logger, logging.DEBUG, "Resolved consent source",
            hashed_user_id=hashed_user_id, source=source
        )

        overview = self.consent_admin.handle(hashed_user_id, withdraw_requested)

        return AdminView(
            consent_services=overview.service_count,
            consents=overview.consent_count,
            removed=overview.removed_count,
            back_url=back_url,
            user_id=user_id,
        )
