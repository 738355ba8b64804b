import asyncio

import pytest

from conftest import FakeInference, StaticFrames, hume_payload
from mockinterview.capture.correlator import EmotionCaptureCorrelator
from mockinterview.capture.frames import UploadedFrameSource
from mockinterview.capture.ledger import ExpressionLedger
from mockinterview.errors import SessionStateError
from mockinterview.generation.chain import CannedQuestionProvider, QuestionChain
from mockinterview.models import RoundKind
from mockinterview.novelty.store import NoveltyStore
from mockinterview.rounds.timer import Phase, SessionConfig


class _Provider:
    """Question provider that numbers its questions and records every request."""

    name = "fake"

    def __init__(self, store: NoveltyStore):
        self.store = store
        self.requests = []
        self.gates: dict[str, asyncio.Event] = {}

    async def __call__(self, request):
        self.requests.append(request)
        number = len(self.requests)
        gate = self.gates.get(request.last_answer)
        if gate is not None:
            await gate.wait()
        text = f"{request.round.value} question {number}"
        self.store.record(request.conversation_id, text)
        return text


def _session(fast_sleep, inference=None, frames=None, clock_fn=None, config=None, **kwargs):
    from mockinterview.session.orchestrator import InterviewSession

    frames = frames if frames is not None else StaticFrames()
    store = NoveltyStore()
    provider = _Provider(store)
    ledger = ExpressionLedger()
    correlator = EmotionCaptureCorrelator(
        frame_source=frames,
        inference=inference or FakeInference(),
        ledger=ledger,
        session_id="sess-1",
        sleep=fast_sleep,
        capturing=frames.live,
    )
    session = InterviewSession(
        session_id="sess-1",
        config=config or SessionConfig(total_minutes=3, break_seconds=2),
        chain=QuestionChain([provider, CannedQuestionProvider(store)]),
        correlator=correlator,
        ledger=ledger,
        frame_source=frames,
        clock_fn=clock_fn or (lambda: 1000.0),
        **kwargs,
    )
    return session, provider, store


@pytest.mark.asyncio
async def test_start_issues_opening_question_and_captures_against_it(fast_sleep):
    inference = FakeInference({"statuses": ["COMPLETED"], "predictions": [hume_payload(("Confidence", 0.9))]})
    session, provider, store = _session(fast_sleep, inference=inference)

    question = await session.start()
    await session.settle()

    assert session.phase == Phase.ROUND_ACTIVE
    assert question.round == RoundKind.TECHNICAL
    assert question.question_id == "technical_1000000"
    assert session.current_question == question
    assert provider.requests[0].last_answer == "N/A"
    assert provider.requests[0].conversation_id == "sess-1:technical"
    assert store.snapshot("sess-1:technical") == [question.text]
    assert session.ledger.get(question.question_id).dominant_emotion == "Confidence"


@pytest.mark.asyncio
async def test_answer_triggers_follow_up_and_capture_for_answered_question(fast_sleep):
    inference = FakeInference(
        {"statuses": ["COMPLETED"], "predictions": [hume_payload(("Joy", 0.8))]},
        {"statuses": ["COMPLETED"], "predictions": [hume_payload(("Doubt", 0.5))]},
        {"statuses": ["COMPLETED"], "predictions": [hume_payload(("Calmness", 0.5))]},
    )
    session, provider, _ = _session(fast_sleep, inference=inference)
    first = await session.start()
    await session.settle()

    follow_up = await session.submit_answer("Use a hash map for O(n) lookups.")
    await session.settle()

    assert follow_up.question_id == "technical_1000001"
    assert follow_up.question_id > first.question_id
    assert provider.requests[1].last_answer == "Use a hash map for O(n) lookups."
    assert provider.requests[1].expression.dominant_emotion == "Joy"
    assert session.transcript[0]["question_id"] == first.question_id
    assert session.transcript[0]["answer"] == "Use a hash map for O(n) lookups."
    assert set(session.ledger.items()) == {first.question_id, follow_up.question_id}


@pytest.mark.asyncio
async def test_blank_answers_are_ignored(fast_sleep):
    session, provider, _ = _session(fast_sleep, frames=StaticFrames(live=False))
    await session.start()

    for raw in (None, "", "   ", "undefined"):
        assert await session.submit_answer(raw) is None

    assert len(provider.requests) == 1
    assert session.transcript == []


@pytest.mark.asyncio
async def test_answer_before_start_is_a_state_error(fast_sleep):
    session, _, _ = _session(fast_sleep)

    with pytest.raises(SessionStateError):
        await session.submit_answer("hello")


@pytest.mark.asyncio
async def test_older_generation_result_is_discarded_after_newer_is_accepted(fast_sleep):
    session, provider, store = _session(fast_sleep, frames=StaticFrames(live=False))
    await session.start()
    provider.gates["slow answer"] = asyncio.Event()

    slow = asyncio.create_task(session.submit_answer("slow answer"))
    await asyncio.sleep(0)
    fast = await session.submit_answer("fast answer")

    provider.gates["slow answer"].set()
    stale = await slow

    assert stale is None
    assert session.current_question == fast
    assert [q.text for q in session.questions] == ["technical question 1", fast.text]
    # the discarded text was still recorded by its provider
    assert len(store.snapshot("sess-1:technical")) == 3


@pytest.mark.asyncio
async def test_result_for_ended_round_is_discarded(fast_sleep):
    session, provider, _ = _session(fast_sleep, frames=StaticFrames(live=False))
    await session.start()
    provider.gates["late"] = asyncio.Event()

    pending = asyncio.create_task(session.submit_answer("late"))
    await asyncio.sleep(0)
    for _ in range(60):
        await session.tick()
    assert session.phase == Phase.BREAK

    provider.gates["late"].set()

    assert await pending is None
    assert session.current_question is None


@pytest.mark.asyncio
async def test_round_transition_requests_opening_question_for_next_round(fast_sleep):
    session, provider, _ = _session(fast_sleep, frames=StaticFrames(live=False))
    await session.start()

    for _ in range(60 + 2):
        await session.tick()
    await session.settle()

    assert session.machine.current_round == RoundKind.CORE
    assert session.current_question.round == RoundKind.CORE
    assert provider.requests[-1].conversation_id == "sess-1:core"
    assert provider.requests[-1].last_answer == "N/A"


@pytest.mark.asyncio
async def test_full_session_summary_groups_questions_by_round(fast_sleep):
    inference = FakeInference(*[{"statuses": ["COMPLETED"], "predictions": [hume_payload(("Joy", 0.7))]}] * 3)
    session, _, _ = _session(fast_sleep, inference=inference)
    await session.start()

    for _ in range(60 + 2 + 60 + 2 + 60):
        await session.tick()
        await session.settle()

    summary = session.summary()

    assert session.phase == Phase.COMPLETE
    assert summary["completed"] is True
    assert [r["round"] for r in summary["rounds"]] == ["technical", "core", "hr"]
    assert all(len(r["questions"]) == 1 for r in summary["rounds"])
    assert summary["rounds"][0]["questions"][0]["expression"]["dominant_emotion"] == "Joy"
    assert session.correlator.capturing is False
    assert session.current_question is None


@pytest.mark.asyncio
async def test_speech_failure_does_not_stop_question_flow(fast_sleep):
    class _BrokenRenderer:
        enabled = True

        async def render(self, text, round_kind):
            raise RuntimeError("tts down")

    session, _, _ = _session(fast_sleep, frames=StaticFrames(live=False), renderer=_BrokenRenderer())

    question = await session.start()

    assert question is not None
    assert session.last_audio is None


@pytest.mark.asyncio
async def test_rendered_audio_is_kept_for_current_question(fast_sleep):
    class _Renderer:
        enabled = True

        async def render(self, text, round_kind):
            return b"mp3"

    session, _, _ = _session(fast_sleep, frames=StaticFrames(live=False), renderer=_Renderer())
    question = await session.start()

    assert session.last_audio == (question.question_id, b"mp3")


@pytest.mark.asyncio
async def test_audio_answer_is_transcribed(fast_sleep):
    class _Transcriber:
        async def transcribe(self, audio, filename="recording.webm"):
            return "I would use a queue."

    session, provider, _ = _session(fast_sleep, frames=StaticFrames(live=False), transcriber=_Transcriber())
    await session.start()

    follow_up = await session.submit_audio_answer(b"webm-bytes")

    assert follow_up is not None
    assert provider.requests[-1].last_answer == "I would use a queue."


@pytest.mark.asyncio
async def test_failed_transcription_yields_no_answer(fast_sleep):
    class _Transcriber:
        async def transcribe(self, audio, filename="recording.webm"):
            raise RuntimeError("whisper down")

    session, provider, _ = _session(fast_sleep, frames=StaticFrames(live=False), transcriber=_Transcriber())
    await session.start()

    assert await session.submit_audio_answer(b"webm-bytes") is None
    assert len(provider.requests) == 1


@pytest.mark.asyncio
async def test_camera_toggle_controls_capture_scheduling(fast_sleep):
    session, _, _ = _session(fast_sleep)
    await session.start()
    await session.settle()

    assert session.set_camera(False) is False
    await session.submit_answer("An answer.")
    assert session.correlator.pending == 0

    assert session.set_camera(True) is True


@pytest.mark.asyncio
async def test_run_clock_drives_session_to_completion(fast_sleep):
    session, _, _ = _session(
        fast_sleep,
        frames=StaticFrames(live=False),
        config=SessionConfig(total_minutes=1, break_seconds=0),
    )
    await session.start()

    await asyncio.wait_for(session.run_clock(interval_sec=0), timeout=5)
    await session.settle()

    assert session.phase == Phase.COMPLETE
    assert [q.round for q in session.questions] == [RoundKind.TECHNICAL, RoundKind.CORE, RoundKind.HR]


@pytest.mark.asyncio
async def test_stop_cancels_background_work(fast_sleep):
    session, _, _ = _session(fast_sleep, frames=StaticFrames(live=False))
    await session.start()
    clock = session.start_clock(interval_sec=10)

    await session.stop()

    assert clock.cancelled() or clock.done()
    assert session.stop_event.is_set()


@pytest.mark.asyncio
async def test_camera_toggle_pauses_uploaded_frames_and_stop_closes_them(fast_sleep):
    frames = UploadedFrameSource()
    session, _, _ = _session(fast_sleep, frames=frames, capture_delay_after_question_sec=0)
    await session.start()
    await session.settle()
    session.push_frame(b"\xff\xd8before")

    session.set_camera(False)
    assert frames.live is False
    assert await frames.grab_jpeg() is None

    session.set_camera(True)
    session.push_frame(b"\xff\xd8after")
    assert frames.live is True

    await session.stop()
    assert frames.live is False
    assert await frames.grab_jpeg() is None


@pytest.mark.asyncio
async def test_clock_running_tracks_clock_driver(fast_sleep):
    session, _, _ = _session(fast_sleep, frames=StaticFrames(live=False))
    await session.start()
    assert session.clock_running is False

    session.start_clock(interval_sec=10)
    assert session.clock_running is True

    await session.stop()
    assert session.clock_running is False


@pytest.mark.asyncio
async def test_qa_mode_bypasses_external_services():
    from mockinterview.session.orchestrator import build_interview_session

    store = NoveltyStore()
    session = build_interview_session(
        "qa-1",
        store,
        service_url="http://questions.internal",
        qa_mode=True,
    )

    assert [provider.name for provider in session.chain.providers] == ["local", "canned"]
    assert session.correlator.capturing is False
    assert session.renderer.enabled is False
    await session.stop()
