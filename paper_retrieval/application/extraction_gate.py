# paper_retrieval/application/extraction_gate.py

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Set


logger = logging.getLogger(__name__)


class ExtractionGate:
    """
    Admits at most one in-flight ingestion per document key.

    A second request for a key that is already in flight is rejected at once
    rather than queued. Use hold() so the key is released on every exit path.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._in_flight: Set[str] = set()

    def try_enter(self, key: str) -> bool:
        with self._lock:
            if key in self._in_flight:
                logger.info("Ingestion already in progress for %s, skipping", key)
                return False
            self._in_flight.add(key)
            return True

    def leave(self, key: str) -> None:
        with self._lock:
            self._in_flight.discard(key)

    def is_in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    def __contains__(self, key: str) -> bool:
        return self.is_in_flight(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._in_flight)

    @contextmanager
    def hold(self, key: str) -> Iterator[bool]:
        """
        Yield True when the key was entered, False when it was already held.
        Only an entered key is released on exit.
        """
        entered = self.try_enter(key)
        try:
            yield entered
        finally:
            if entered:
                self.leave(key)
