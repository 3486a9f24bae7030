"""
Event fingerprinting and duplicate suppression.

The same usage record is routinely written to more than one log file, so
every scan folds events with identical fingerprints into one.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Set

from claudette.storage.models import UsageEvent


FINGERPRINT_BYTES = 8

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def unix_millis(ts: datetime) -> int:
    """Milliseconds since the Unix epoch, computed without float rounding."""
    return (ts - _EPOCH) // timedelta(milliseconds=1)


def generate_fingerprint(event: UsageEvent) -> str:
    """Compute a short stable identity for an event.

    Hashes timestamp (ms), total tokens, model and event id, keeping the
    first 8 bytes of the SHA-256 digest as hex. A collision only causes
    under-counting.
    """
    data = "%d:%d:%s:%s" % (
        unix_millis(event.timestamp),
        event.total_tokens,
        event.model,
        event.event_id,
    )
    digest = hashlib.sha256(data.encode("utf-8")).digest()
    return digest[:FINGERPRINT_BYTES].hex()


class FingerprintCache:
    """Set of fingerprints seen during one logical scan.

    Pass a single instance to every reader that belongs to the scan so
    duplicates are suppressed across files and projects. Not thread-safe.
    """

    def __init__(self):
        self._seen: Set[str] = set()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, fingerprint: str) -> bool:
        return fingerprint in self._seen

    def seen(self, fingerprint: str) -> bool:
        return fingerprint in self._seen

    def add(self, fingerprint: str) -> None:
        self._seen.add(fingerprint)

    def check_and_add(self, event: UsageEvent) -> bool:
        """Record the event's fingerprint.

        Returns:
            True if this is the first occurrence, False for a duplicate
        """
        fingerprint = generate_fingerprint(event)
        if fingerprint in self._seen:
            return False
        self._seen.add(fingerprint)
        return True
