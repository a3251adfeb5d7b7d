"""Spaced-repetition core: scheduling engine, session planner, outcome recorder."""

from flashcards.srs.errors import CardNotFound, InvalidGrade, InvalidState, SchedulingError, StaleState
from flashcards.srs.planner import DueCandidate, SessionPlanner
from flashcards.srs.recorder import OutcomeRecorder
from flashcards.srs.scheduler import ReviewResult, Scheduler, SchedulerConfig
from flashcards.srs.state import Grade, Phase, ReviewState, parse_grade

__all__ = [
    "CardNotFound",
    "DueCandidate",
    "Grade",
    "InvalidGrade",
    "InvalidState",
    "OutcomeRecorder",
    "Phase",
    "ReviewResult",
    "ReviewState",
    "Scheduler",
    "SchedulerConfig",
    "SchedulingError",
    "SessionPlanner",
    "StaleState",
    "parse_grade",
]
