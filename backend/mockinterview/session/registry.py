from __future__ import annotations

import time
from threading import Lock

from mockinterview.session.orchestrator import InterviewSession


class SessionRegistry:
    def __init__(self):
        self._lock = Lock()
        self._sessions: dict[str, dict] = {}

    def register(self, session: InterviewSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = {
                "session": session,
                "created_at": time.time(),
                "updated_at": time.time(),
                "active": True,
            }

    def touch(self, session_id: str) -> None:
        with self._lock:
            if session_id in self._sessions:
                self._sessions[session_id]["updated_at"] = time.time()

    def mark_inactive(self, session_id: str) -> None:
        with self._lock:
            if session_id in self._sessions:
                self._sessions[session_id]["active"] = False
                self._sessions[session_id]["updated_at"] = time.time()

    def get(self, session_id: str) -> InterviewSession | None:
        with self._lock:
            item = self._sessions.get(session_id)
            return item["session"] if item else None

    def is_active(self, session_id: str) -> bool:
        with self._lock:
            item = self._sessions.get(session_id)
            return bool(item and item.get("active"))

    def sessions(self) -> list[InterviewSession]:
        with self._lock:
            return [item["session"] for item in self._sessions.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def cleanup_inactive(self, ttl_sec: float) -> list[InterviewSession]:
        """
        Drops sessions untouched for longer than ttl_sec and returns them.
        An active session is kept while its clock driver is still running.
        """
        cutoff = time.time() - max(0.0, float(ttl_sec or 0.0))
        removed = []
        with self._lock:
            for session_id, data in list(self._sessions.items()):
                updated_at = float((data or {}).get("updated_at") or 0.0)
                if updated_at > cutoff:
                    continue
                session = data["session"]
                if data.get("active") and getattr(session, "clock_running", False):
                    continue
                removed.append(self._sessions.pop(session_id)["session"])
        return removed


session_registry = SessionRegistry()
