"""
Inputs the identity collaborator selects before the hasher runs:
which attribute is the user id, and which IdP the consents are scoped to.
"""

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from consent_admin.identity.metadata import IDP_HOSTED, IDP_REMOTE, MetadataHandler
from consent_admin.shared.exceptions import MissingUserAttributeError
from consent_admin.shared.logging import get_logger

logger = get_logger(__name__)


class AuthenticatedIdentity(BaseModel):
    """An authenticated session as seen by the admin view."""

    attributes: Dict[str, List[str]] = Field(default_factory=dict)
    # Entity id of the upstream IdP when this installation acts as a bridge
    remote_idp: Optional[str] = None


def select_user_id(attributes: Mapping[str, Any], attribute_name: str) -> str:
    """First value of the configured user-id attribute."""
    values = attributes.get(attribute_name)
    if isinstance(values, str):
        values = [values]
    if not values or not values[0]:
        raise MissingUserAttributeError(attribute_name)
    return values[0]


def resolve_source(
    metadata: MetadataHandler,
    remote_idp: Optional[str],
    allow_bridge: bool = True
) -> str:
    """
    Build the consent source ``<metadata-set>|<entity-id>``.

    With bridging allowed and a remote IdP known, consents are scoped to the
    remote IdP; otherwise to the hosted one.

    Raises:
        MetadataNotFoundError if the chosen IdP has no metadata
    """
    if allow_bridge and remote_idp is not None:
        entity_id = remote_idp
        idp_metadata = metadata.get_metadata(entity_id, IDP_REMOTE)
    else:
        entity_id = metadata.get_current_entity_id(IDP_HOSTED)
        idp_metadata = metadata.get_metadata(entity_id, IDP_HOSTED)

    logger.debug(f"IdP is [{entity_id}]")
    return f"{idp_metadata['metadata-set']}|{entity_id}"
