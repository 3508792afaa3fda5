"""Deduplication of sightings into one record per normalized address."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from threading import Lock

from .models import EmailRecord, Sighting
from .stats import StatsAggregator

RecordCallback = Callable[[EmailRecord], None]


def record_id(address: str) -> str:
    """Stable record id derived from the normalized address."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"mailto:{address}"))


def record_from_sighting(sighting: Sighting) -> EmailRecord:
    candidate = sighting.candidate
    return EmailRecord(
        id=record_id(candidate.address),
        address=candidate.address,
        domain=candidate.domain,
        is_valid=sighting.validation.is_valid,
        source=sighting.source,
        confidence=sighting.confidence,
        type=sighting.email_type,
        source_url=candidate.source_url,
        sighting_scores=(sighting.confidence,),
    )


def _evidence_key(record: EmailRecord) -> tuple[int, str, str, str]:
    # Higher confidence wins; ties fall back to a fixed lexical order.
    return (-record.confidence, record.source, record.source_url, record.type)


def merge_records(
    existing: EmailRecord, incoming: EmailRecord, policy: str = "max"
) -> EmailRecord:
    """Merge two records for the same address; commutative for both policies."""
    best = min(existing, incoming, key=_evidence_key)
    scores = tuple(sorted(existing.sighting_scores + incoming.sighting_scores))
    if policy == "mean":
        confidence = int(sum(scores) / len(scores) + 0.5)
    else:
        confidence = max(scores)
    return EmailRecord(
        id=existing.id,
        address=existing.address,
        domain=existing.domain,
        is_valid=existing.is_valid or incoming.is_valid,
        source=best.source,
        confidence=confidence,
        type=best.type,
        source_url=best.source_url,
        sighting_scores=scores,
    )


class Deduplicator:
    """Thread-safe result set keyed by normalized address.

    Merges for one address are serialized by a per-address lock; distinct
    addresses merge concurrently. The registry lock only guards creation of
    new keys and snapshots.
    """

    def __init__(
        self,
        *,
        stats: StatsAggregator,
        policy: str = "max",
        on_record: RecordCallback | None = None,
    ) -> None:
        self._stats = stats
        self._policy = policy
        self._on_record = on_record
        self._registry_lock = Lock()
        self._locks: dict[str, Lock] = {}
        self._records: dict[str, EmailRecord] = {}

    def _lock_for(self, address: str) -> Lock:
        with self._registry_lock:
            lock = self._locks.get(address)
            if lock is None:
                lock = self._locks[address] = Lock()
            return lock

    def add(self, sighting: Sighting) -> EmailRecord:
        """Create or merge the record for a sighting and return its new state."""
        incoming = record_from_sighting(sighting)
        address = incoming.address
        with self._lock_for(address):
            existing = self._records.get(address)
            if existing is None:
                with self._registry_lock:
                    self._records[address] = incoming
                self._stats.email_found(incoming.is_valid)
                merged = incoming
            else:
                merged = merge_records(existing, incoming, self._policy)
                with self._registry_lock:
                    self._records[address] = merged
                if merged.is_valid and not existing.is_valid:
                    self._stats.email_upgraded()
            if self._on_record is not None:
                self._on_record(merged)
        return merged

    def get(self, address: str) -> EmailRecord | None:
        return self._records.get(address)

    def records(self) -> tuple[EmailRecord, ...]:
        """Snapshot of all records in first-seen order."""
        with self._registry_lock:
            return tuple(self._records.values())

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._records)
