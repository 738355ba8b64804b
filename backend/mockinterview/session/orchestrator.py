from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from core.config import (
    CAPTURE_DELAY_AFTER_ANSWER_SEC,
    CAPTURE_DELAY_AFTER_QUESTION_SEC,
    QA_MODE,
    QUESTION_SERVICE_URL,
    TICK_INTERVAL_SEC,
)
from core.logger import log_event
from mockinterview.capture.correlator import EmotionCaptureCorrelator
from mockinterview.capture.frames import FrameSource, UploadedFrameSource
from mockinterview.capture.inference import HumeBatchClient
from mockinterview.capture.ledger import ExpressionLedger
from mockinterview.errors import GenerationUnavailable, SessionStateError
from mockinterview.generation.chain import QuestionChain, build_question_chain
from mockinterview.generation.generator import QuestionGenerator, QuestionRequest, sanitize_answer
from mockinterview.models import NO_ANSWER, Question, ResumeFacts, RoundKind
from mockinterview.novelty.store import NoveltyStore, scoped_conversation_id
from mockinterview.rounds.timer import (
    ROUND_ENDED,
    ROUND_STARTED,
    SESSION_COMPLETED,
    Phase,
    RoundStateMachine,
    SessionConfig,
    TimerEvent,
)
from mockinterview.services.speech import SpeechRenderer, Transcriber

logger = logging.getLogger("mockinterview.session")


class InterviewSession:
    """
    Public surface of one interview: start, answer, tick, read state.

    The clock driver (run_clock) is the only caller of tick(). Question
    generation started by a round transition runs as its own task so a slow
    completion never holds the clock back.
    """

    def __init__(
        self,
        session_id: str,
        config: SessionConfig,
        chain: QuestionChain,
        correlator: EmotionCaptureCorrelator,
        ledger: ExpressionLedger,
        resume: ResumeFacts | None = None,
        renderer: SpeechRenderer | None = None,
        transcriber: Transcriber | None = None,
        frame_source: FrameSource | None = None,
        capture_delay_after_question_sec: float = CAPTURE_DELAY_AFTER_QUESTION_SEC,
        capture_delay_after_answer_sec: float = CAPTURE_DELAY_AFTER_ANSWER_SEC,
        clock_fn: Callable[[], float] = time.time,
    ):
        self.session_id = session_id
        self.config = config
        self.chain = chain
        self.correlator = correlator
        self.ledger = ledger
        self.resume = resume or ResumeFacts()
        self.renderer = renderer
        self.transcriber = transcriber
        self.frame_source = frame_source
        self.capture_delay_after_question_sec = float(capture_delay_after_question_sec)
        self.capture_delay_after_answer_sec = float(capture_delay_after_answer_sec)
        self._clock_fn = clock_fn

        self.machine = RoundStateMachine(config)
        self.current_question: Question | None = None
        self.questions: list[Question] = []
        self.transcript: list[dict] = []
        self.last_audio: tuple[str, bytes] | None = None
        self.started_at: float | None = None
        self.completed_at: float | None = None
        self.round_started_at: dict[RoundKind, float] = {}
        self.round_ended_at: dict[RoundKind, float] = {}

        self._request_seq = 0
        self._accepted_seq = 0
        self._last_id_ms = 0
        self.stop_event = asyncio.Event()
        self.tasks: list[asyncio.Task] = []
        self._clock_task: asyncio.Task | None = None

    def conversation_id(self, round_kind: RoundKind) -> str:
        return scoped_conversation_id(self.session_id, round_kind.value)

    @property
    def phase(self) -> Phase:
        return self.machine.phase

    def create_task(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self.tasks.append(task)
        return task

    async def start(self) -> Question | None:
        events = self.machine.start()
        self.started_at = self._clock_fn()
        log_event("session", "session_started", self.session_id, total_minutes=self.config.total_minutes)
        opening = None
        for event in events:
            opening = await self._handle_event(event, background=False) or opening
        return opening

    async def tick(self) -> list[TimerEvent]:
        events = self.machine.tick()
        for event in events:
            await self._handle_event(event, background=True)
        return events

    async def _handle_event(self, event: TimerEvent, background: bool) -> Question | None:
        now = self._clock_fn()
        log_event("session", event.kind, self.session_id, round=event.round.value if event.round else None)
        if event.kind == ROUND_STARTED:
            self.round_started_at[event.round] = now
            self.current_question = None
            if background:
                self.create_task(self._ask(event.round, NO_ANSWER))
                return None
            return await self._ask(event.round, NO_ANSWER)
        if event.kind == ROUND_ENDED:
            self.round_ended_at.setdefault(event.round, now)
            self.current_question = None
        if event.kind == SESSION_COMPLETED:
            self.current_question = None
            self.completed_at = now
            self.correlator.disable()
        return None

    def _next_question_id(self, round_kind: RoundKind) -> str:
        ms = int(self._clock_fn() * 1000)
        if ms <= self._last_id_ms:
            ms = self._last_id_ms + 1
        self._last_id_ms = ms
        return f"{round_kind.value}_{ms}"

    async def _ask(self, round_kind: RoundKind, last_answer: str) -> Question | None:
        self._request_seq += 1
        seq = self._request_seq
        request = QuestionRequest.build(
            round_kind,
            self.conversation_id(round_kind),
            last_answer,
            self.ledger.current(),
            self.resume,
        )
        try:
            text, provider = await self.chain.next_question(request)
        except GenerationUnavailable as exc:
            logger.error("question generation unavailable | session=%s round=%s err=%s", self.session_id, round_kind.value, exc)
            return None

        if seq < self._accepted_seq or self.phase != Phase.ROUND_ACTIVE or self.machine.current_round != round_kind:
            logger.info(
                "stale question discarded | session=%s round=%s seq=%s accepted=%s phase=%s",
                self.session_id,
                round_kind.value,
                seq,
                self._accepted_seq,
                self.phase.value,
            )
            return None

        self._accepted_seq = seq
        question = Question(
            question_id=self._next_question_id(round_kind),
            text=text,
            round=round_kind,
            issued_at=self._clock_fn(),
        )
        self.current_question = question
        self.questions.append(question)
        log_event(
            "session",
            "question_issued",
            self.session_id,
            question_id=question.question_id,
            round=round_kind.value,
            provider=provider,
            text=text,
        )
        self.correlator.schedule_capture(question.question_id, self.capture_delay_after_question_sec)
        await self._speak(question)
        return question

    async def _speak(self, question: Question) -> None:
        if self.renderer is None or not self.renderer.enabled:
            return
        try:
            audio = await self.renderer.render(question.text, question.round)
        except Exception as exc:
            logger.warning("speech rendering failed | session=%s question=%s err=%s", self.session_id, question.question_id, exc)
            return
        if audio:
            self.last_audio = (question.question_id, audio)

    async def submit_answer(self, text: str | None) -> Question | None:
        if self.phase != Phase.ROUND_ACTIVE:
            raise SessionStateError(f"cannot answer while phase={self.phase.value}")
        question = self.current_question
        if question is None:
            raise SessionStateError("no question is awaiting an answer")

        answer = sanitize_answer(text)
        if answer == NO_ANSWER:
            logger.info("empty answer ignored | session=%s question=%s", self.session_id, question.question_id)
            return None

        self.transcript.append(
            {
                "question_id": question.question_id,
                "round": question.round.value,
                "question": question.text,
                "answer": answer,
                "answered_at": self._clock_fn(),
            }
        )
        log_event("session", "answer_submitted", self.session_id, question_id=question.question_id, answer=answer)
        self.correlator.schedule_capture(question.question_id, self.capture_delay_after_answer_sec)
        return await self._ask(question.round, answer)

    async def submit_audio_answer(self, audio: bytes, filename: str = "recording.webm") -> Question | None:
        if self.transcriber is None:
            raise SessionStateError("transcription is not configured")
        try:
            text = await self.transcriber.transcribe(audio, filename=filename)
        except Exception as exc:
            logger.warning("transcription failed | session=%s err=%s", self.session_id, exc)
            return None
        if not text:
            return None
        return await self.submit_answer(text)

    def set_camera(self, enabled: bool) -> bool:
        if isinstance(self.frame_source, UploadedFrameSource):
            self.frame_source.enabled = bool(enabled)
            if not enabled:
                self.frame_source.clear()
        if enabled:
            self.correlator.enable()
        else:
            self.correlator.disable()
        log_event("session", "camera_toggled", self.session_id, enabled=bool(enabled))
        return self.correlator.capturing

    def push_frame(self, data: str | bytes) -> int:
        if not isinstance(self.frame_source, UploadedFrameSource):
            raise SessionStateError("session does not accept uploaded frames")
        return self.frame_source.push(data)

    async def run_clock(self, interval_sec: float = TICK_INTERVAL_SEC) -> None:
        while not self.machine.finished and not self.stop_event.is_set():
            await asyncio.sleep(interval_sec)
            await self.tick()
        log_event("session", "clock_stopped", self.session_id, phase=self.phase.value)

    @property
    def clock_running(self) -> bool:
        return self._clock_task is not None and not self._clock_task.done()

    def start_clock(self, interval_sec: float = TICK_INTERVAL_SEC) -> asyncio.Task:
        if self._clock_task is None:
            self._clock_task = self.create_task(self.run_clock(interval_sec))
        return self._clock_task

    async def settle(self) -> None:
        """Waits for background question requests and captures to finish."""
        pending = [task for task in self.tasks if not task.done() and task is not self._clock_task]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self.correlator.drain()

    async def stop(self) -> None:
        if not self.stop_event.is_set():
            self.stop_event.set()

        for task in self.tasks:
            task.cancel()

        await asyncio.gather(*self.tasks, return_exceptions=True)
        await self.correlator.stop()
        close = getattr(self.frame_source, "close", None)
        if callable(close):
            close()

    def snapshot(self) -> dict:
        timer = self.machine.snapshot()
        return {
            "session_id": self.session_id,
            "phase": timer["phase"],
            "round": timer["round"],
            "round_index": timer["round_index"],
            "round_minutes": timer["round_minutes"],
            "clock": timer["clock"],
            "current_question": self.current_question.to_dict() if self.current_question else None,
            "questions_asked": len(self.questions),
            "capturing": self.correlator.capturing,
            "expressions": {qid: expr.to_dict() for qid, expr in self.ledger.items().items()},
            "current_expression": self.ledger.current().to_dict(),
        }

    def summary(self) -> dict:
        expressions = self.ledger.items()
        rounds = []
        for round_kind in self.config.rounds:
            started = self.round_started_at.get(round_kind)
            ended = self.round_ended_at.get(round_kind)
            rounds.append(
                {
                    "round": round_kind.value,
                    "started_at": started,
                    "ended_at": ended,
                    "duration_sec": round(ended - started, 2) if started is not None and ended is not None else None,
                    "questions": [
                        {
                            **question.to_dict(),
                            "expression": expressions[question.question_id].to_dict()
                            if question.question_id in expressions
                            else None,
                        }
                        for question in self.questions
                        if question.round == round_kind
                    ],
                }
            )
        return {
            "session_id": self.session_id,
            "phase": self.phase.value,
            "completed": self.machine.finished,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "total_minutes": self.config.total_minutes,
            "round_minutes": self.config.round_minutes,
            "break_seconds": self.config.break_seconds,
            "rounds": rounds,
            "transcript": list(self.transcript),
        }


def build_interview_session(
    session_id: str,
    store: NoveltyStore,
    config: SessionConfig | None = None,
    resume: ResumeFacts | None = None,
    frame_source: FrameSource | None = None,
    generator: QuestionGenerator | None = None,
    service_url: str = QUESTION_SERVICE_URL,
    inference: HumeBatchClient | None = None,
    renderer: SpeechRenderer | None = None,
    transcriber: Transcriber | None = None,
    qa_mode: bool = QA_MODE,
) -> InterviewSession:
    """
    Wires one session. In QA mode the remote question service, emotion
    inference and speech rendering are bypassed.
    """
    if qa_mode:
        service_url = ""
        renderer = renderer if renderer is not None else SpeechRenderer(api_key="")
    ledger = ExpressionLedger()
    chain = build_question_chain(store, generator or QuestionGenerator(store), service_url=service_url)
    correlator = EmotionCaptureCorrelator(
        frame_source=frame_source,
        inference=inference or HumeBatchClient(),
        ledger=ledger,
        session_id=session_id,
        capturing=not qa_mode,
    )
    return InterviewSession(
        session_id=session_id,
        config=config or SessionConfig(),
        chain=chain,
        correlator=correlator,
        ledger=ledger,
        resume=resume,
        renderer=renderer if renderer is not None else SpeechRenderer(),
        transcriber=transcriber if transcriber is not None else Transcriber(),
        frame_source=frame_source,
    )
