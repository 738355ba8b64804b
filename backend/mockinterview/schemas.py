from typing import Any, Literal

from pydantic import BaseModel, Field

from core.config import INTERVIEW_BREAK_SECONDS, INTERVIEW_TOTAL_MINUTES


class QuestionResponse(BaseModel):
    question: str
    round: str
    conversation_id: str


class HistoryResponse(BaseModel):
    round: str
    conversation_id: str
    questions: list[str]


class SessionConfigIn(BaseModel):
    total_minutes: int = Field(default=INTERVIEW_TOTAL_MINUTES, ge=1, le=180)
    break_seconds: int = Field(default=INTERVIEW_BREAK_SECONDS, ge=0, le=600)


class ResumeIn(BaseModel):
    skills: list[Any] = Field(default_factory=list)
    projects: list[Any] = Field(default_factory=list)
    achievements: list[Any] = Field(default_factory=list)
    experience: list[Any] = Field(default_factory=list)


class StartSessionRequest(BaseModel):
    interview: SessionConfigIn = Field(default_factory=SessionConfigIn)
    resume: ResumeIn = Field(default_factory=ResumeIn)
    frame_source: Literal["upload", "camera", "none"] = "upload"
    camera_enabled: bool = True
    start_clock: bool = True


class AnswerRequest(BaseModel):
    text: str | None = None


class FrameRequest(BaseModel):
    image: str


class CameraRequest(BaseModel):
    enabled: bool
