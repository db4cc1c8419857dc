"""
In-process key-value consent store.
"""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Tuple

from consent_admin.consent.models import ConsentRecord, StoreStatistics
from consent_admin.consent.store import ConsentStore, _require

_Key = Tuple[str, str]


class MemoryConsentStore(ConsentStore):
    """
    Consent records kept in a dict: hashed user id -> {(service, fingerprint): record}.

    One lock guards every operation, so a reader sees a user's records either
    before or after a bulk delete, never halfway through.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._records: Dict[str, Dict[_Key, ConsentRecord]] = {}

    def has_consent(self, hashed_user_id: str, service_id: str, attribute_fingerprint: str) -> bool:
        _require("hashed_user_id", hashed_user_id)
        key = (service_id, attribute_fingerprint)
        with self._lock:
            record = self._records.get(hashed_user_id, {}).get(key)
            if record is None:
                return False
            self._records[hashed_user_id][key] = ConsentRecord(
                hashed_user_id=record.hashed_user_id,
                service_id=record.service_id,
                attribute_fingerprint=record.attribute_fingerprint,
                consent_date=record.consent_date,
                usage_date=datetime.now(timezone.utc),
            )
            return True

    def save_consent(self, hashed_user_id: str, service_id: str, attribute_fingerprint: str) -> None:
        _require("hashed_user_id", hashed_user_id)
        _require("service_id", service_id)
        _require("attribute_fingerprint", attribute_fingerprint)
        now = datetime.now(timezone.utc)
        with self._lock:
            bucket = self._records.setdefault(hashed_user_id, {})
            key = (service_id, attribute_fingerprint)
            if key not in bucket:
                bucket[key] = ConsentRecord(
                    hashed_user_id=hashed_user_id,
                    service_id=service_id,
                    attribute_fingerprint=attribute_fingerprint,
                    consent_date=now,
                    usage_date=now,
                )

    def list_consents(self, hashed_user_id: str) -> List[ConsentRecord]:
        _require("hashed_user_id", hashed_user_id)
        with self._lock:
            return list(self._records.get(hashed_user_id, {}).values())

    def delete_all_consents(self, hashed_user_id: str) -> int:
        _require("hashed_user_id", hashed_user_id)
        with self._lock:
            bucket = self._records.get(hashed_user_id, {})
            removed = 0
            for key in list(bucket):
                self._remove_record(hashed_user_id, key)
                removed += 1
            self._records.pop(hashed_user_id, None)
            return removed

    def delete_consent(self, hashed_user_id: str, service_id: str) -> int:
        _require("hashed_user_id", hashed_user_id)
        with self._lock:
            bucket = self._records.get(hashed_user_id, {})
            keys = [key for key in bucket if key[0] == service_id]
            for key in keys:
                self._remove_record(hashed_user_id, key)
            if not bucket:
                self._records.pop(hashed_user_id, None)
            return len(keys)

    def _remove_record(self, hashed_user_id: str, key: _Key):
        """
        Drop one record. Caller holds the lock.

        Kept as a separate method so tests can subclass it and pause a bulk
        delete halfway through.
        """
        del self._records[hashed_user_id][key]

    def get_statistics(self) -> StoreStatistics:
        with self._lock:
            records = [r for bucket in self._records.values() for r in bucket.values()]
            return StoreStatistics(
                total=len(records),
                users=len({r.hashed_user_id for r in records}),
                services=len({r.service_id for r in records}),
            )
