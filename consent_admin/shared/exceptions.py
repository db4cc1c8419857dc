"""
Exception hierarchy for consent-admin.
"""


class ConsentAdminError(Exception):
    """Base exception for all consent-admin errors."""
    pass


class ConfigurationError(ConsentAdminError):
    """Raised when the store descriptor or installation salt is missing or invalid."""
    pass


class InvalidArgumentError(ConsentAdminError, ValueError):
    """Raised when a caller passes a value the core cannot accept (e.g. empty user id)."""
    pass


class StorageError(ConsentAdminError):
    """
    Raised when a consent store operation fails.

    ``transient`` tells the caller whether retrying the whole operation
    may succeed (connection drop, timeout, lock contention) or not
    (schema mismatch, misconfiguration).
    """

    transient: bool = False

    def __init__(self, message: str, transient: bool | None = None):
        super().__init__(message)
        if transient is not None:
            self.transient = transient


class TransientStorageError(StorageError):
    """Storage failure the caller may retry."""
    transient = True


class PermanentStorageError(StorageError):
    """Storage failure that will not go away on retry."""
    transient = False


class NotAuthenticatedError(ConsentAdminError):
    """Raised when the admin view is reached without an authenticated identity."""
    pass


class MissingUserAttributeError(ConsentAdminError):
    """Raised when the configured user-id attribute is absent from the user's attributes."""

    def __init__(self, attribute_name: str):
        super().__init__(f"Missing '{attribute_name}' in user's attributes")
        self.attribute_name = attribute_name


class MetadataNotFoundError(ConsentAdminError):
    """Raised when identity-provider metadata cannot be found."""

    def __init__(self, entity_id: str, metadata_set: str):
        super().__init__(f"No metadata for '{entity_id}' in set '{metadata_set}'")
        self.entity_id = entity_id
        self.metadata_set = metadata_set
