"""
Latest-analysis store for the report view

Holds exactly one record: the most recent analysis response plus its
report extras (recommendations, processed image name). Every write
replaces the previous record.

Concurrency: last write wins. A lock keeps the slot swap atomic, but reads
are not tied to the caller's own request; if another analysis finishes
in between, the report shows that one instead.
"""

import copy
import threading
from typing import Dict, Optional

from .logger import log


class LatestAnalysisStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._record: Optional[Dict] = None

    def save(self, record: Dict) -> None:
        """Replace the stored record (last write wins)."""
        snapshot = copy.deepcopy(record)
        with self._lock:
            replaced = self._record is not None
            self._record = snapshot

        log.info('storage', 'Stored latest analysis',
                 replaced=replaced,
                 cows=snapshot.get('total_cows_detected'),
                 image=snapshot.get('processed_image'))

    def latest(self) -> Optional[Dict]:
        """Copy of the latest record, or None if nothing was analyzed yet."""
        with self._lock:
            record = self._record
        return copy.deepcopy(record) if record is not None else None

    @property
    def has_result(self) -> bool:
        return self._record is not None

    def clear(self) -> None:
        with self._lock:
            self._record = None
