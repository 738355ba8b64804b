from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol

from core.config import (
    CAPTURE_FETCH_ATTEMPTS,
    CAPTURE_FETCH_BACKOFF_SEC,
    CAPTURE_MAX_POLL_ATTEMPTS,
    CAPTURE_POLL_INTERVAL_SEC,
)
from core.logger import log_event
from mockinterview.capture.frames import FrameSource
from mockinterview.capture.inference import extract_emotions
from mockinterview.capture.ledger import ExpressionLedger
from mockinterview.errors import CaptureSkipped, InferenceUnavailable
from mockinterview.models import FALLBACK_EXPRESSION, UserExpression

logger = logging.getLogger("mockinterview.capture")

CONFIDENT_LABELS = {"confidence"}
NERVOUS_LABELS = {"doubt", "frustration"}
STRUGGLING_LABELS = {"confusion", "frustration"}


class InferenceClient(Protocol):
    async def submit_job(self, image: bytes) -> str: ...

    async def job_status(self, job_id: str) -> str: ...

    async def fetch_predictions(self, job_id: str): ...


def derive_expression(emotions: list[dict]) -> UserExpression:
    if not emotions:
        raise InferenceUnavailable("no emotions to derive from")

    dominant = max(emotions, key=lambda item: float(item.get("score", 0.0)))
    label = str(dominant.get("name") or "")
    score = float(dominant.get("score", 0.0))
    key = label.casefold()

    return UserExpression(
        dominant_emotion=label,
        confidence_score=round(score, 2),
        is_confident=key in CONFIDENT_LABELS or score > 0.6,
        is_nervous=key in NERVOUS_LABELS or score < 0.4,
        is_struggling=key in STRUGGLING_LABELS or score < 0.3,
        emotion_breakdown=[{"name": e.get("name"), "score": e.get("score")} for e in emotions],
    )


class EmotionCaptureCorrelator:
    """
    Runs one inference pass per capture and posts the result under the
    question id the capture was started for. Every started capture posts
    something, the fallback expression included.
    """

    def __init__(
        self,
        frame_source: FrameSource | None,
        inference: InferenceClient,
        ledger: ExpressionLedger,
        session_id: str | None = None,
        poll_interval_sec: float = CAPTURE_POLL_INTERVAL_SEC,
        max_poll_attempts: int = CAPTURE_MAX_POLL_ATTEMPTS,
        fetch_attempts: int = CAPTURE_FETCH_ATTEMPTS,
        fetch_backoff_sec: float = CAPTURE_FETCH_BACKOFF_SEC,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        capturing: bool = True,
    ):
        self.frame_source = frame_source
        self.inference = inference
        self.ledger = ledger
        self.session_id = session_id
        self.poll_interval_sec = float(poll_interval_sec)
        self.max_poll_attempts = max(1, int(max_poll_attempts))
        self.fetch_attempts = max(1, int(fetch_attempts))
        self.fetch_backoff_sec = float(fetch_backoff_sec)
        self._sleep = sleep
        self._capturing = bool(capturing)
        self._tasks: set[asyncio.Task] = set()

    @property
    def capturing(self) -> bool:
        return self._capturing

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def enable(self) -> None:
        self._capturing = True

    def disable(self) -> None:
        # in-flight captures keep running and still post their result
        self._capturing = False

    def _check_preconditions(self) -> None:
        if not self._capturing:
            raise CaptureSkipped("capture disabled")
        if self.frame_source is None or not self.frame_source.live:
            raise CaptureSkipped("no live frame source")

    async def capture_for(self, question_id: str) -> UserExpression | None:
        try:
            self._check_preconditions()
            image = await self.frame_source.grab_jpeg()
            if not image:
                raise CaptureSkipped("no frame available")
        except CaptureSkipped as exc:
            logger.debug("capture skipped | question=%s reason=%s", question_id, exc)
            return None

        try:
            expression = await self._infer(image)
        except Exception as exc:
            logger.warning("inference unavailable, using fallback | question=%s err=%s", question_id, exc)
            expression = FALLBACK_EXPRESSION

        self.ledger.post(question_id, expression)
        log_event(
            "capture",
            "expression_posted",
            self.session_id,
            question_id=question_id,
            dominant_emotion=expression.dominant_emotion,
            confidence_score=expression.confidence_score,
            fallback=expression is FALLBACK_EXPRESSION,
        )
        return expression

    async def _infer(self, image: bytes) -> UserExpression:
        job_id = await self.inference.submit_job(image)
        await self._wait_for_completion(job_id)
        emotions = await self._fetch_emotions(job_id)
        return derive_expression(emotions)

    async def _wait_for_completion(self, job_id: str) -> None:
        for attempt in range(1, self.max_poll_attempts + 1):
            await self._sleep(self.poll_interval_sec)
            status = str(await self.inference.job_status(job_id) or "").upper()
            if status == "COMPLETED":
                logger.debug("inference job completed | job=%s polls=%s", job_id, attempt)
                return
            if status == "FAILED":
                raise InferenceUnavailable(f"inference job {job_id} failed")
        raise InferenceUnavailable(f"inference job {job_id} not completed after {self.max_poll_attempts} polls")

    async def _fetch_emotions(self, job_id: str) -> list[dict]:
        for attempt in range(1, self.fetch_attempts + 1):
            try:
                emotions = extract_emotions(await self.inference.fetch_predictions(job_id))
            except Exception as exc:
                logger.warning("prediction fetch failed | job=%s attempt=%s err=%s", job_id, attempt, exc)
                emotions = []
            if emotions:
                return emotions
            if attempt < self.fetch_attempts:
                await self._sleep(self.fetch_backoff_sec)
        raise InferenceUnavailable(f"no emotions for job {job_id}")

    def schedule_capture(self, question_id: str, delay_sec: float = 0.0) -> asyncio.Task | None:
        if not self._capturing:
            return None
        task = asyncio.create_task(self._delayed_capture(question_id, delay_sec))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _delayed_capture(self, question_id: str, delay_sec: float) -> UserExpression | None:
        if delay_sec > 0:
            await self._sleep(delay_sec)
        return await self.capture_for(question_id)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        self._capturing = False
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
