"""
Consent store contract and backend factory.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Union

from pydantic import ValidationError

from consent_admin.consent.models import ConsentRecord, StoreStatistics
from consent_admin.shared.config import StoreConfig
from consent_admin.shared.exceptions import ConfigurationError, InvalidArgumentError
from consent_admin.shared.logging import get_logger

logger = get_logger(__name__)


def _require(name: str, value: str):
    if not value:
        raise InvalidArgumentError(f"{name} must be a non-empty string")


class ConsentStore(ABC):
    """
    Persistence of consent records keyed by hashed user id.

    Every backend failure surfaces as a StorageError (transient or
    permanent); backends never retry on their own.
    """

    @abstractmethod
    def has_consent(self, hashed_user_id: str, service_id: str, attribute_fingerprint: str) -> bool:
        """Check whether this exact grant exists."""

    @abstractmethod
    def save_consent(self, hashed_user_id: str, service_id: str, attribute_fingerprint: str) -> None:
        """Record a grant. Saving an existing triple is a no-op."""

    @abstractmethod
    def list_consents(self, hashed_user_id: str) -> List[ConsentRecord]:
        """All grants for one user, in insertion order. Empty list when none."""

    @abstractmethod
    def delete_all_consents(self, hashed_user_id: str) -> int:
        """Atomically delete every grant for one user; return how many were removed."""

    @abstractmethod
    def delete_consent(self, hashed_user_id: str, service_id: str) -> int:
        """Delete the grants one user gave to one service; return how many were removed."""

    @abstractmethod
    def get_statistics(self) -> StoreStatistics:
        """Store-wide totals."""

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def parse_store_config(descriptor: Union[StoreConfig, Mapping[str, Any], str]) -> ConsentStore:
    """
    Build a consent store from its descriptor.

    ``descriptor`` is a StoreConfig, a mapping with the same keys, or a bare
    backend name.

    Raises:
        ConfigurationError if the descriptor is malformed or the backend
        cannot be reached
    """
    # Imported here: backends import this module for the base class
    from consent_admin.consent.memory_store import MemoryConsentStore
    from consent_admin.consent.sqlite_store import SQLiteConsentStore

    if isinstance(descriptor, str):
        descriptor = {"backend": descriptor}

    if isinstance(descriptor, Mapping):
        try:
            descriptor = StoreConfig(**descriptor)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid consent store descriptor: {e}") from e
    elif not isinstance(descriptor, StoreConfig):
        raise ConfigurationError(
            f"Consent store descriptor must be a mapping, got {type(descriptor).__name__}"
        )

    backend = descriptor.backend.lower()
    logger.debug("Creating consent store", extra={"backend": backend, "table": descriptor.table})

    if backend in ("sqlite", "database"):
        return SQLiteConsentStore(
            descriptor.dsn, table=descriptor.table, timeout=descriptor.timeout
        )
    if backend == "memory":
        return MemoryConsentStore()

    raise ConfigurationError(f"Unknown consent store backend '{descriptor.backend}'")
