"""
Identifier hashing: derive the consent store key from a raw user id and source.

HMAC-SHA256 keyed with the installation salt over ``<len(raw_user_id)>:<raw_user_id>|<source>``.
The length prefix keeps a ``|`` inside the user id from shifting the split
between the two fields. Encoded as URL-safe base64 without padding (43 characters).
"""

import base64
import hashlib
import hmac
from collections.abc import Iterable, Mapping
from typing import Any, Union

from consent_admin.shared.config import ConsentAdminSettings, MIN_SALT_LENGTH
from consent_admin.shared.exceptions import ConfigurationError, InvalidArgumentError


def _b64(digest: bytes) -> str:
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class IdentifierHasher:
    """Deterministic one-way hasher for user identifiers."""

    def __init__(self, secret: str, scope_by_source: bool = True):
        if not secret:
            raise ConfigurationError("Identifier hasher requires a secret salt")
        if len(secret) < MIN_SALT_LENGTH:
            raise ConfigurationError(
                f"Secret salt must be at least {MIN_SALT_LENGTH} characters"
            )
        self._key = secret.encode("utf-8")
        self.scope_by_source = scope_by_source

    @classmethod
    def from_settings(cls, settings: ConsentAdminSettings) -> "IdentifierHasher":
        """Build from configuration; a missing salt is a ConfigurationError."""
        salt = settings.hasher.secret_salt
        if salt is None:
            raise ConfigurationError(
                "hasher.secret_salt is not configured (set CONSENT_SECRET_SALT)"
            )
        return cls(salt.get_secret_value(), scope_by_source=settings.hasher.scope_by_source)

    def __repr__(self) -> str:
        return f"IdentifierHasher(scope_by_source={self.scope_by_source})"

    def hash(self, raw_user_id: str, source: str) -> str:
        """
        Hash a raw user id for use as the consent store key.

        ``source`` is treated as an opaque string. When ``scope_by_source`` is
        off it is ignored, so one person has a single key across all IdPs.

        Raises:
            InvalidArgumentError if raw_user_id is empty
        """
        if not raw_user_id:
            raise InvalidArgumentError("raw_user_id must be a non-empty string")

        message = f"{len(raw_user_id)}:{raw_user_id}"
        if self.scope_by_source:
            message = f"{message}|{source}"

        digest = hmac.new(self._key, message.encode("utf-8"), hashlib.sha256).digest()
        return _b64(digest)


def attribute_fingerprint(
    attributes: Mapping[str, Union[Any, Iterable[Any]]],
    include_values: bool = False,
) -> str:
    """
    Canonical hash of an attribute set.

    Names are sorted so ordering of the release never matters. With
    ``include_values`` the (sorted) values are part of the digest too, so a
    changed value produces a new fingerprint and therefore a new consent.
    """
    parts = []
    for name in sorted(attributes):
        if include_values:
            values = attributes[name]
            if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
                values = [values]
            rendered = sorted(str(v) for v in values)
            parts.append(name + "=" + "\x1f".join(rendered))
        else:
            parts.append(name)

    digest = hashlib.sha256("\x1e".join(parts).encode("utf-8")).digest()
    return _b64(digest)
