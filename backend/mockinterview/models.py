from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import json
import time


class RoundKind(str, Enum):
    TECHNICAL = "technical"
    CORE = "core"
    HR = "hr"


ROUND_ORDER: tuple[RoundKind, ...] = (RoundKind.TECHNICAL, RoundKind.CORE, RoundKind.HR)

NO_ANSWER = "N/A"


@dataclass(frozen=True)
class Question:
    question_id: str
    text: str
    round: RoundKind
    issued_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "question_id": self.question_id,
            "text": self.text,
            "round": self.round.value,
            "issued_at": self.issued_at,
        }


@dataclass(frozen=True)
class UserExpression:
    dominant_emotion: str
    confidence_score: float
    is_confident: bool = False
    is_nervous: bool = False
    is_struggling: bool = False
    emotion_breakdown: list[dict] | None = None

    def describe(self) -> str:
        """Emotion descriptor sent with a question request."""
        descriptor = f"{self.dominant_emotion} (confidence: {self.confidence_score})"
        tags = []
        if self.is_confident:
            tags.append("confident")
        if self.is_nervous:
            tags.append("nervous")
        if self.is_struggling:
            tags.append("struggling")
        if tags:
            descriptor += " " + ", ".join(tags)
        return descriptor

    def to_dict(self) -> dict:
        return {
            "dominant_emotion": self.dominant_emotion,
            "confidence_score": self.confidence_score,
            "is_confident": self.is_confident,
            "is_nervous": self.is_nervous,
            "is_struggling": self.is_struggling,
            "emotion_breakdown": list(self.emotion_breakdown or []),
        }


NEUTRAL_EXPRESSION = UserExpression(dominant_emotion="neutral", confidence_score=0.5)

FALLBACK_EXPRESSION = UserExpression(
    dominant_emotion="Neutral",
    confidence_score=0.5,
    is_nervous=True,
    emotion_breakdown=[],
)


def _render_fact(item) -> str:
    if isinstance(item, str):
        return item
    return json.dumps(item, ensure_ascii=False, default=str)


@dataclass
class ResumeFacts:
    skills: list = field(default_factory=list)
    projects: list = field(default_factory=list)
    achievements: list = field(default_factory=list)
    experience: list = field(default_factory=list)

    def for_round(self, round_kind: RoundKind) -> dict[str, list[str]]:
        if round_kind == RoundKind.HR:
            return {
                "achievements": [_render_fact(a) for a in self.achievements],
                "experiences": [_render_fact(e) for e in self.experience],
            }
        return {
            "skills": [_render_fact(s) for s in self.skills],
            "projects": [_render_fact(p) for p in self.projects],
        }
