from mockinterview.rounds.timer import Phase, RoundStateMachine, SessionClock, SessionConfig, TimerEvent

__all__ = ["Phase", "RoundStateMachine", "SessionClock", "SessionConfig", "TimerEvent"]
