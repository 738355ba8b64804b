from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
import asyncio
import logging
import os
import secrets

from core.config import CONVERSATION_IDLE_TTL_SEC, NOVELTY_MAX_ENTRIES, QA_MODE, QUESTION_SERVICE_URL
from mockinterview.capture.frames import CameraFrameSource, UploadedFrameSource
from mockinterview.errors import MediaDeviceMissing, MediaPermissionDenied, MediaUnavailable, SessionStateError
from mockinterview.generation.generator import QuestionGenerator, QuestionRequest, sanitize_answer
from mockinterview.models import ResumeFacts, RoundKind
from mockinterview.novelty.store import DEFAULT_CONVERSATION_ID, NoveltyStore, scoped_conversation_id
from mockinterview.rounds.timer import SessionConfig
from mockinterview.schemas import (
    AnswerRequest,
    CameraRequest,
    FrameRequest,
    HistoryResponse,
    QuestionResponse,
    StartSessionRequest,
)
from mockinterview.session.orchestrator import InterviewSession, build_interview_session
from mockinterview.session.registry import session_registry

logging.basicConfig(
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    level=logging.INFO,
)

app = FastAPI(title="Mock Interview Orchestrator")
logger = logging.getLogger("mockinterview.main")


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    return [item.strip() for item in raw.split(",") if item.strip()]


_allowed_origins = _get_allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

SESSION_CLEANUP_TTL_SEC = max(60, int(os.getenv("SESSION_CLEANUP_TTL_SEC", "1800")))
SESSION_CLEANUP_INTERVAL_SEC = max(30, int(os.getenv("SESSION_CLEANUP_INTERVAL_SEC", "120")))
_session_cleanup_task: asyncio.Task | None = None

novelty_store = NoveltyStore()
question_generator = QuestionGenerator(novelty_store)

_ROUND_ALIASES = {
    "technical": RoundKind.TECHNICAL,
    "core": RoundKind.CORE,
    "project": RoundKind.CORE,
    "hr": RoundKind.HR,
}

# Fields a generation request must carry besides `emotion`.
_REQUIRED_FACTS = {
    RoundKind.TECHNICAL: (),
    RoundKind.CORE: ("skills", "projects"),
    RoundKind.HR: ("achievements", "experiences"),
}


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, (tuple, set)):
        return list(value)
    return [value]


def _resolve_round(name: str) -> RoundKind:
    round_kind = _ROUND_ALIASES.get(str(name or "").strip().lower())
    if round_kind is None:
        raise HTTPException(status_code=404, detail=f"Unknown round: {name}")
    return round_kind


def _conversation_id(request: Request) -> str:
    return str(request.headers.get("X-Conversation-Id") or "").strip() or DEFAULT_CONVERSATION_ID


def _get_session(session_id: str, require_active: bool = False) -> InterviewSession:
    session = session_registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Invalid interview session")
    if require_active and not session_registry.is_active(session_id):
        raise HTTPException(status_code=409, detail="Interview session is no longer active")
    session_registry.touch(session_id)
    return session


def _media_error(exc: MediaUnavailable) -> HTTPException:
    if isinstance(exc, MediaPermissionDenied):
        status = 403
    elif isinstance(exc, MediaDeviceMissing):
        status = 404
    else:
        status = 503
    return HTTPException(status_code=status, detail=exc.user_message)


async def _generate_question(round_kind: RoundKind, payload: dict, request: Request):
    payload = payload if isinstance(payload, dict) else {}
    emotion = str(payload.get("emotion") or "").strip()
    missing = [name for name in _REQUIRED_FACTS[round_kind] if payload.get(name) is None]
    if not emotion or missing:
        fields = ["emotion", *_REQUIRED_FACTS[round_kind]]
        return JSONResponse(status_code=400, content={"error": f"Missing required fields: {', '.join(fields)}"})

    conversation_id = _conversation_id(request)
    resume = ResumeFacts(
        skills=_as_list(payload.get("skills")),
        projects=_as_list(payload.get("projects")),
        achievements=_as_list(payload.get("achievements")),
        experience=_as_list(payload.get("experiences")),
    )
    question_request = QuestionRequest(
        round=round_kind,
        conversation_id=scoped_conversation_id(conversation_id, round_kind.value),
        last_answer=sanitize_answer(payload.get("last_answer")),
        emotion=emotion,
        facts=resume.for_round(round_kind),
    )
    try:
        question = await question_generator.generate(question_request)
    except Exception as exc:
        logger.exception("question generation failed | round=%s conversation=%s", round_kind.value, conversation_id)
        return JSONResponse(status_code=500, content={"error": f"Failed to generate question: {exc}"})

    return QuestionResponse(question=question, round=round_kind.value, conversation_id=conversation_id)


@app.on_event("startup")
async def startup_banner():
    global _session_cleanup_task
    if QA_MODE:
        logger.info("[SYSTEM] QA_MODE ENABLED, external services bypassed")
    logger.info("[SYSTEM] CORS allow_origins=%s", _allowed_origins)
    logger.info("[SYSTEM] remote question service=%s", QUESTION_SERVICE_URL or "disabled")

    async def _session_cleanup_loop():
        while True:
            await asyncio.sleep(SESSION_CLEANUP_INTERVAL_SEC)
            removed = session_registry.cleanup_inactive(SESSION_CLEANUP_TTL_SEC)
            for session in removed:
                await session.stop()
            if removed:
                logger.info("[SYSTEM] cleaned inactive sessions=%s", len(removed))
            evicted = novelty_store.cleanup_idle(CONVERSATION_IDLE_TTL_SEC)
            if evicted > 0:
                logger.info("[SYSTEM] evicted idle conversations=%s", evicted)

    _session_cleanup_task = asyncio.create_task(_session_cleanup_loop())


@app.on_event("shutdown")
async def shutdown_handler():
    global _session_cleanup_task
    if _session_cleanup_task is not None:
        _session_cleanup_task.cancel()
        try:
            await _session_cleanup_task
        except asyncio.CancelledError:
            pass
        finally:
            _session_cleanup_task = None
    for session in session_registry.sessions():
        await session.stop()
    logger.info("[SYSTEM] shutdown complete")


@app.get("/healthz")
async def healthz():
    return {"status": "ok", "service": "mockinterview"}


@app.post("/api/technical")
async def technical_question(payload: dict, request: Request):
    return await _generate_question(RoundKind.TECHNICAL, payload, request)


@app.post("/api/project")
async def project_question(payload: dict, request: Request):
    return await _generate_question(RoundKind.CORE, payload, request)


@app.post("/api/hr")
async def hr_question(payload: dict, request: Request):
    return await _generate_question(RoundKind.HR, payload, request)


@app.get("/api/history/{round_name}", response_model=HistoryResponse)
async def question_history(round_name: str, conversation_id: str = DEFAULT_CONVERSATION_ID, limit: int = NOVELTY_MAX_ENTRIES):
    round_kind = _resolve_round(round_name)
    capped = max(1, min(int(limit or NOVELTY_MAX_ENTRIES), NOVELTY_MAX_ENTRIES))
    return HistoryResponse(
        round=round_kind.value,
        conversation_id=conversation_id,
        questions=novelty_store.snapshot(scoped_conversation_id(conversation_id, round_kind.value))[-capped:],
    )


@app.post("/api/sessions")
async def create_session(req: StartSessionRequest):
    session_id = secrets.token_urlsafe(12)

    frame_source = None
    if req.frame_source == "camera":
        frame_source = CameraFrameSource()
        try:
            frame_source.open()
        except MediaUnavailable as exc:
            logger.warning("camera unavailable | session=%s err=%s", session_id, exc)
            raise _media_error(exc)
    elif req.frame_source == "upload":
        frame_source = UploadedFrameSource()

    session = build_interview_session(
        session_id,
        novelty_store,
        config=SessionConfig(
            total_minutes=req.interview.total_minutes,
            break_seconds=req.interview.break_seconds,
        ),
        resume=ResumeFacts(
            skills=req.resume.skills,
            projects=req.resume.projects,
            achievements=req.resume.achievements,
            experience=req.resume.experience,
        ),
        frame_source=frame_source,
        generator=question_generator,
    )
    if not req.camera_enabled:
        session.set_camera(False)

    session_registry.register(session)
    await session.start()
    if req.start_clock:
        clock_task = session.start_clock()
        clock_task.add_done_callback(lambda _task: session_registry.mark_inactive(session_id))
    return session.snapshot()


@app.get("/api/sessions/{session_id}")
async def session_state(session_id: str):
    return _get_session(session_id).snapshot()


@app.post("/api/sessions/{session_id}/answer")
async def submit_answer(session_id: str, req: AnswerRequest):
    session = _get_session(session_id, require_active=True)
    try:
        question = await session.submit_answer(req.text)
    except SessionStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return {
        "question": question.to_dict() if question else None,
        "state": session.snapshot(),
    }


@app.post("/api/sessions/{session_id}/answer/audio")
async def submit_audio_answer(session_id: str, file: UploadFile = File(...)):
    session = _get_session(session_id, require_active=True)
    audio = await file.read()
    if not audio:
        raise HTTPException(status_code=400, detail="Empty audio upload")
    try:
        question = await session.submit_audio_answer(audio, filename=file.filename or "recording.webm")
    except SessionStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return {
        "question": question.to_dict() if question else None,
        "state": session.snapshot(),
    }


@app.post("/api/sessions/{session_id}/frame")
async def push_frame(session_id: str, req: FrameRequest):
    session = _get_session(session_id, require_active=True)
    try:
        size = session.push_frame(req.image)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SessionStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return {"accepted": True, "bytes": size}


@app.post("/api/sessions/{session_id}/camera")
async def toggle_camera(session_id: str, req: CameraRequest):
    session = _get_session(session_id, require_active=True)
    return {"capturing": session.set_camera(req.enabled)}


@app.get("/api/sessions/{session_id}/audio")
async def question_audio(session_id: str):
    session = _get_session(session_id)
    current = session.current_question
    if session.last_audio is None or current is None or session.last_audio[0] != current.question_id:
        raise HTTPException(status_code=404, detail="No audio for the current question")
    return Response(content=session.last_audio[1], media_type="audio/mpeg")


@app.get("/api/sessions/{session_id}/summary")
async def session_summary(session_id: str):
    return _get_session(session_id).summary()


@app.post("/api/sessions/{session_id}/stop")
async def stop_session(session_id: str):
    session = _get_session(session_id)
    await session.stop()
    session_registry.mark_inactive(session_id)
    return session.summary()
