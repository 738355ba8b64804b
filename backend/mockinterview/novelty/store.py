from __future__ import annotations

from collections import OrderedDict
from contextlib import contextmanager
import logging
import re
import time
from threading import Lock, RLock

from core.config import CONVERSATION_CAPACITY, NOVELTY_MAX_ENTRIES, NOVELTY_PROMPT_WINDOW

logger = logging.getLogger("mockinterview.novelty")

DEFAULT_CONVERSATION_ID = "default"

_NON_ALNUM = re.compile(r"[^a-z0-9 ]")
_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    lowered = str(text or "").lower()
    return _WHITESPACE.sub(" ", _NON_ALNUM.sub(" ", lowered)).strip()


def scoped_conversation_id(conversation_id: str | None, scope: str) -> str:
    """Key for one run through one round, e.g. "abc:technical"."""
    base = str(conversation_id or "").strip() or DEFAULT_CONVERSATION_ID
    return f"{base}:{scope}"


class NoveltyRecord:
    def __init__(self, max_entries: int = NOVELTY_MAX_ENTRIES):
        self.max_entries = max(1, int(max_entries))
        self.lock = RLock()
        self.asked: list[str] = []
        self.touched_at = time.time()

    def append(self, text: str) -> None:
        self.asked.append(text)
        if len(self.asked) > self.max_entries:
            del self.asked[: len(self.asked) - self.max_entries]
        self.touched_at = time.time()


class NoveltyStore:
    """
    Per-conversation memory of issued questions.
    Conversations are evicted least-recently-used once capacity is reached.
    """

    def __init__(
        self,
        capacity: int = CONVERSATION_CAPACITY,
        max_entries: int = NOVELTY_MAX_ENTRIES,
    ):
        self._lock = Lock()
        self._records: OrderedDict[str, NoveltyRecord] = OrderedDict()
        self.capacity = max(1, int(capacity))
        self.max_entries = max(1, int(max_entries))

    def _record_for(self, conversation_id: str | None) -> NoveltyRecord:
        key = str(conversation_id or "").strip() or DEFAULT_CONVERSATION_ID
        with self._lock:
            record = self._records.get(key)
            if record is None:
                record = NoveltyRecord(self.max_entries)
                self._records[key] = record
                while len(self._records) > self.capacity:
                    evicted, _ = self._records.popitem(last=False)
                    logger.info("novelty conversation evicted | conversation=%s reason=capacity", evicted)
            else:
                self._records.move_to_end(key)
                record.touched_at = time.time()
            return record

    def _existing(self, conversation_id: str | None) -> NoveltyRecord | None:
        key = str(conversation_id or "").strip() or DEFAULT_CONVERSATION_ID
        with self._lock:
            return self._records.get(key)

    @contextmanager
    def exclusive(self, conversation_id: str | None):
        """Hold the conversation's lock across a check-then-record sequence."""
        record = self._record_for(conversation_id)
        with record.lock:
            yield

    def record(self, conversation_id: str | None, text: str) -> None:
        record = self._record_for(conversation_id)
        with record.lock:
            record.append(str(text))

    def recent(self, conversation_id: str | None, n: int = NOVELTY_PROMPT_WINDOW) -> list[str]:
        record = self._existing(conversation_id)
        if record is None or n <= 0:
            return []
        with record.lock:
            return list(record.asked[-n:])

    def collides(self, conversation_id: str | None, candidate: str) -> bool:
        canonical = normalize(candidate)
        record = self._existing(conversation_id)
        if record is None:
            return False
        with record.lock:
            return any(normalize(entry) == canonical for entry in record.asked)

    def snapshot(self, conversation_id: str | None) -> list[str]:
        record = self._existing(conversation_id)
        if record is None:
            return []
        with record.lock:
            return list(record.asked)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, conversation_id: str) -> bool:
        with self._lock:
            return conversation_id in self._records

    def cleanup_idle(self, ttl_sec: float) -> int:
        cutoff = time.time() - max(0.0, float(ttl_sec))
        removed = 0
        with self._lock:
            for conversation_id, record in list(self._records.items()):
                if record.touched_at <= cutoff:
                    self._records.pop(conversation_id, None)
                    removed += 1
        return removed
