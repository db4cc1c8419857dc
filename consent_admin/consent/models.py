"""
Consent record model and the aggregates built from it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class ConsentRecord:
    """
    One stored grant: a user agreed to release an attribute set to a service.

    Unique on (hashed_user_id, service_id, attribute_fingerprint). Records are
    never updated in place; a changed attribute set is a new record.
    """
    hashed_user_id: str
    service_id: str
    attribute_fingerprint: str
    consent_date: Optional[datetime] = None
    usage_date: Optional[datetime] = None

    @property
    def key(self) -> tuple:
        return (self.hashed_user_id, self.service_id, self.attribute_fingerprint)


@dataclass
class ConsentSummary:
    """Aggregate view of one user's consents."""
    service_count: int
    consent_count: int
    records: List[ConsentRecord] = field(default_factory=list)

    @classmethod
    def from_records(cls, records: List[ConsentRecord]) -> "ConsentSummary":
        services = {record.service_id for record in records}
        return cls(
            service_count=len(services),
            consent_count=len(records),
            records=list(records),
        )


@dataclass
class StoreStatistics:
    """Store-wide counts."""
    total: int
    users: int
    services: int
