"""
Identity-provider metadata lookup.
"""

from typing import Any, Dict, Optional, Protocol

from consent_admin.shared.config import ConsentAdminSettings
from consent_admin.shared.exceptions import MetadataNotFoundError

IDP_REMOTE = "saml20-idp-remote"
IDP_HOSTED = "saml20-idp-hosted"


class MetadataHandler(Protocol):
    """What the consent source resolution needs from a metadata backend."""

    def get_metadata(self, entity_id: str, metadata_set: str) -> Dict[str, Any]:
        ...

    def get_current_entity_id(self, metadata_set: str) -> str:
        ...


class StaticMetadataHandler:
    """Metadata held in configuration: {metadata-set: {entity-id: {...}}}."""

    def __init__(
        self,
        metadata: Dict[str, Dict[str, Dict[str, Any]]],
        hosted_idp: Optional[str] = None
    ):
        self.metadata = metadata
        self.hosted_idp = hosted_idp

    @classmethod
    def from_settings(cls, settings: ConsentAdminSettings) -> "StaticMetadataHandler":
        return cls(settings.metadata, settings.hosted_idp)

    def get_metadata(self, entity_id: str, metadata_set: str) -> Dict[str, Any]:
        """
        Entity metadata with ``metadata-set`` and ``entityid`` filled in.

        Raises:
            MetadataNotFoundError if the entity is not in the set
        """
        entries = self.metadata.get(metadata_set, {})
        if entity_id not in entries:
            raise MetadataNotFoundError(entity_id, metadata_set)

        result = dict(entries[entity_id] or {})
        result["metadata-set"] = metadata_set
        result["entityid"] = entity_id
        return result

    def get_current_entity_id(self, metadata_set: str) -> str:
        """Entity id of the hosted IdP (configured, or the only one in the set)."""
        if self.hosted_idp:
            return self.hosted_idp

        entries = self.metadata.get(metadata_set, {})
        if len(entries) == 1:
            return next(iter(entries))
        raise MetadataNotFoundError("__DYNAMIC:1__", metadata_set)
