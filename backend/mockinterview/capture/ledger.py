from __future__ import annotations

from threading import Lock

from mockinterview.models import NEUTRAL_EXPRESSION, UserExpression


class ExpressionLedger:
    """
    Expressions keyed by the question id a capture was started for.
    Entries are only written by posting (question_id, expression) events.
    """

    def __init__(self):
        self._lock = Lock()
        self._entries: dict[str, UserExpression] = {}
        self._latest: UserExpression | None = None

    def post(self, question_id: str, expression: UserExpression) -> None:
        with self._lock:
            self._entries[str(question_id)] = expression
            self._latest = expression

    def get(self, question_id: str) -> UserExpression | None:
        with self._lock:
            return self._entries.get(str(question_id))

    def current(self) -> UserExpression:
        with self._lock:
            return self._latest or NEUTRAL_EXPRESSION

    def items(self) -> dict[str, UserExpression]:
        with self._lock:
            return dict(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
