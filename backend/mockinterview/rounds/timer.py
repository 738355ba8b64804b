from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from core.config import INTERVIEW_BREAK_SECONDS, INTERVIEW_TOTAL_MINUTES
from mockinterview.errors import SessionStateError
from mockinterview.models import ROUND_ORDER, RoundKind

ROUND_STARTED = "round_started"
ROUND_ENDED = "round_ended"
BREAK_STARTED = "break_started"
SESSION_COMPLETED = "session_completed"


class Phase(str, Enum):
    NOT_STARTED = "not_started"
    ROUND_ACTIVE = "round_active"
    BREAK = "break"
    COMPLETE = "complete"


@dataclass(frozen=True)
class SessionConfig:
    total_minutes: int = INTERVIEW_TOTAL_MINUTES
    break_seconds: int = INTERVIEW_BREAK_SECONDS
    rounds: tuple[RoundKind, ...] = ROUND_ORDER

    def __post_init__(self):
        if int(self.total_minutes) < 1:
            raise ValueError("total_minutes must be at least 1")
        if int(self.break_seconds) < 0:
            raise ValueError("break_seconds must not be negative")
        if not self.rounds:
            raise ValueError("rounds must not be empty")

    @property
    def round_minutes(self) -> int:
        return max(1, int(self.total_minutes) // len(self.rounds))

    @property
    def round_seconds(self) -> int:
        return self.round_minutes * 60

    @property
    def total_seconds(self) -> int:
        return int(self.total_minutes) * 60


@dataclass
class SessionClock:
    total_seconds: int
    round_seconds: int
    break_seconds: int
    total_remaining: int = 0
    round_remaining: int = 0
    break_remaining: int = 0

    @classmethod
    def from_config(cls, config: SessionConfig) -> "SessionClock":
        return cls(
            total_seconds=config.total_seconds,
            round_seconds=config.round_seconds,
            break_seconds=int(config.break_seconds),
            total_remaining=config.total_seconds,
            round_remaining=config.round_seconds,
        )

    def to_dict(self) -> dict:
        return {
            "total_seconds": self.total_seconds,
            "round_seconds": self.round_seconds,
            "break_seconds": self.break_seconds,
            "total_remaining": self.total_remaining,
            "round_remaining": self.round_remaining,
            "break_remaining": self.break_remaining,
        }


@dataclass(frozen=True)
class TimerEvent:
    kind: str
    round: RoundKind | None = None
    round_index: int = -1


@dataclass
class RoundStateMachine:
    """
    NOT_STARTED -> ROUND_ACTIVE -> BREAK -> ROUND_ACTIVE -> ... -> COMPLETE.
    tick() is meant to be called by a single driver; it is the only writer of the clock.
    """

    config: SessionConfig = field(default_factory=SessionConfig)
    phase: Phase = Phase.NOT_STARTED
    round_index: int = -1
    clock: SessionClock | None = None

    def __post_init__(self):
        if self.clock is None:
            self.clock = SessionClock.from_config(self.config)

    @property
    def current_round(self) -> RoundKind | None:
        if self.phase == Phase.ROUND_ACTIVE or self.phase == Phase.BREAK:
            return self.config.rounds[self.round_index]
        return None

    @property
    def finished(self) -> bool:
        return self.phase == Phase.COMPLETE

    def start(self) -> list[TimerEvent]:
        if self.phase != Phase.NOT_STARTED:
            raise SessionStateError(f"session already started (phase={self.phase.value})")
        self.clock = SessionClock.from_config(self.config)
        return [self._begin_round(0)]

    def tick(self) -> list[TimerEvent]:
        if self.phase == Phase.ROUND_ACTIVE:
            return self._tick_round()
        if self.phase == Phase.BREAK:
            return self._tick_break()
        return []

    def _begin_round(self, index: int) -> TimerEvent:
        self.phase = Phase.ROUND_ACTIVE
        self.round_index = index
        self.clock.round_remaining = self.clock.round_seconds
        self.clock.break_remaining = 0
        return TimerEvent(ROUND_STARTED, self.config.rounds[index], index)

    def _tick_round(self) -> list[TimerEvent]:
        clock = self.clock
        clock.round_remaining = max(0, clock.round_remaining - 1)
        clock.total_remaining = max(0, clock.total_remaining - 1)
        if clock.round_remaining > 0 and clock.total_remaining > 0:
            return []

        ended = self.config.rounds[self.round_index]
        events = [TimerEvent(ROUND_ENDED, ended, self.round_index)]
        if self.round_index + 1 < len(self.config.rounds):
            self.phase = Phase.BREAK
            clock.break_remaining = clock.break_seconds
            events.append(TimerEvent(BREAK_STARTED, ended, self.round_index))
            if clock.break_remaining <= 0:
                events.append(self._begin_round(self.round_index + 1))
        else:
            self.phase = Phase.COMPLETE
            clock.round_remaining = 0
            events.append(TimerEvent(SESSION_COMPLETED, ended, self.round_index))
        return events

    def _tick_break(self) -> list[TimerEvent]:
        self.clock.break_remaining = max(0, self.clock.break_remaining - 1)
        if self.clock.break_remaining > 0:
            return []
        return [self._begin_round(self.round_index + 1)]

    def snapshot(self) -> dict:
        current = self.current_round
        return {
            "phase": self.phase.value,
            "round": current.value if current else None,
            "round_index": self.round_index,
            "round_minutes": self.config.round_minutes,
            "clock": self.clock.to_dict(),
        }
