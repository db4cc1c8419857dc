"""
Admin query façade: what the consent administration view asks of the store.
"""

import logging
from typing import List

from pydantic import BaseModel, Field

from consent_admin.consent.models import ConsentRecord, ConsentSummary
from consent_admin.consent.store import ConsentStore, _require
from consent_admin.shared.logging import get_logger, log_with_context

logger = get_logger(__name__)

NOT_REQUESTED = -1


class ConsentOverview(BaseModel):
    """Result handed to the presentation layer."""

    service_count: int
    consent_count: int
    records: List[ConsentRecord] = Field(default_factory=list)
    removed_count: int = NOT_REQUESTED


class ConsentAdmin:
    """
    Stateless façade over a ConsentStore.

    No retries: a StorageError from the store reaches the caller unchanged.
    """

    def __init__(self, store: ConsentStore):
        self.store = store

    def view_consents(self, hashed_user_id: str) -> ConsentSummary:
        """Count a user's consents and the distinct services they cover."""
        _require("hashed_user_id", hashed_user_id)
        summary = ConsentSummary.from_records(self.store.list_consents(hashed_user_id))

        log_with_context(
            logger,
            logging.DEBUG,
            f"no of consents [{summary.consent_count}] no of services [{summary.service_count}]",
            hashed_user_id=hashed_user_id,
            action="view_consents",
        )
        return summary

    def withdraw_all(self, hashed_user_id: str) -> int:
        """Delete every consent the user has given. Not reversible."""
        _require("hashed_user_id", hashed_user_id)
        log_with_context(
            logger,
            logging.INFO,
            "User has requested to withdraw all consents given",
            hashed_user_id=hashed_user_id,
            action="withdraw_all",
        )
        return self.store.delete_all_consents(hashed_user_id)

    def handle(self, hashed_user_id: str, withdraw_requested: bool = False) -> ConsentOverview:
        """
        Withdraw (when asked) and then summarise, as one admin page request.

        ``removed_count`` stays -1 when no withdrawal was requested.
        """
        removed = NOT_REQUESTED
        if withdraw_requested:
            removed = self.withdraw_all(hashed_user_id)

        summary = self.view_consents(hashed_user_id)
        return ConsentOverview(
            service_count=summary.service_count,
            consent_count=summary.consent_count,
            records=summary.records,
            removed_count=removed,
        )
