from mockinterview.session.orchestrator import InterviewSession, build_interview_session
from mockinterview.session.registry import SessionRegistry, session_registry

__all__ = ["InterviewSession", "SessionRegistry", "build_interview_session", "session_registry"]
