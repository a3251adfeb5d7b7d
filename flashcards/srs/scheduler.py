"""Scheduling engine: maps (ReviewState, Grade, now) to the next ReviewState.

The engine is a pure function of its inputs. It never reads the wall clock,
touches storage or keeps state between calls, so it is safe to share one
instance across any number of concurrent callers.

Key concepts:
- Stability (S): days until recall probability drops to the reference threshold.
- Difficulty (D): intrinsic item hardness in [min_difficulty, max_difficulty].
- Phase: New -> Learning -> Review, with Review -> Relearning on a lapse.

On a successful review stability grows by ``factor(grade, D, elapsed)``:

    factor = 1 + gain[grade] * (D_max + 1 - D) / D_max * (1 + ELAPSED_BONUS * ln(1 + elapsed))

Every term after ``gain`` is positive, so the ordering of ``gain`` carries
through: factor(Easy) > factor(Good) > factor(Hard) > 1.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from flashcards.config import settings
from flashcards.srs.errors import InvalidGrade, InvalidState
from flashcards.srs.state import Grade, Phase, ReviewState

logger = logging.getLogger(__name__)

# Stability growth per successful grade, strictly increasing
GRADE_GAIN: dict[Grade, float] = {
    Grade.HARD: 0.2,
    Grade.GOOD: 1.2,
    Grade.EASY: 2.0,
}

# How much a longer gap since the last review boosts stability growth
ELAPSED_BONUS = 0.1

# Fraction of the distance to the neutral difficulty a Good review closes
GOOD_REVERSION = 0.1


@dataclass
class SchedulerConfig:
    """Tunable scheduling parameters (defaults come from settings)."""

    learning_steps: int = settings.learning_steps
    relearning_steps: int = settings.relearning_steps
    initial_stability: float = settings.initial_stability
    initial_difficulty: float = settings.initial_difficulty
    min_stability: float = settings.min_stability
    lapse_penalty: float = settings.lapse_penalty
    min_difficulty: float = settings.min_difficulty
    max_difficulty: float = settings.max_difficulty
    difficulty_step: float = settings.difficulty_step
    seed_interval_days: float = settings.seed_interval_days
    max_interval_days: int = settings.max_interval_days
    learning_step: timedelta = field(
        default_factory=lambda: timedelta(minutes=settings.learning_step_minutes)
    )
    relearning_step: timedelta = field(
        default_factory=lambda: timedelta(minutes=settings.relearning_step_minutes)
    )

    def __post_init__(self) -> None:
        if self.learning_steps < 1 or self.relearning_steps < 1:
            raise ValueError("learning_steps and relearning_steps must be at least 1")
        if self.min_stability <= 0:
            raise ValueError("min_stability must be positive")
        if self.initial_stability < self.min_stability:
            raise ValueError("initial_stability must be >= min_stability")
        if not 0 < self.lapse_penalty <= 1:
            raise ValueError("lapse_penalty must be in (0, 1]")
        if not 0 < self.min_difficulty < self.max_difficulty:
            raise ValueError("difficulty bounds must satisfy 0 < min < max")
        if not self.min_difficulty <= self.initial_difficulty <= self.max_difficulty:
            raise ValueError("initial_difficulty must lie within the difficulty bounds")
        if self.seed_interval_days < 0:
            raise ValueError("seed_interval_days must be non-negative")
        if self.max_interval_days < 1:
            raise ValueError("max_interval_days must be at least 1")
        if self.initial_stability > self.max_interval_days:
            raise ValueError("initial_stability must not exceed max_interval_days")
        if self.difficulty_step < 0:
            raise ValueError("difficulty_step must be non-negative")
        if self.learning_step < timedelta(0) or self.relearning_step < timedelta(0):
            raise ValueError("learning_step and relearning_step must be non-negative")


@dataclass(frozen=True)
class ReviewResult:
    """The result of applying one grade to a review state."""

    state: ReviewState
    interval: timedelta  # Time from the review until the card is due again
    elapsed_days: float  # Gap used for the stability update


class Scheduler:
    """Pure spaced-repetition scheduling engine."""

    def __init__(self, config: SchedulerConfig | None = None) -> None:
        self.config = config or SchedulerConfig()

    def new_state(self, now: datetime) -> ReviewState:
        """Return the default state for a never-reviewed card, due at ``now``."""
        return ReviewState.new(
            now,
            stability=self.config.initial_stability,
            difficulty=self.config.initial_difficulty,
        )

    def validate(self, state: ReviewState) -> None:
        """Reject a state that violates its invariants.

        Invalid input is never repaired here; corruption has to be detected
        and fixed upstream.

        Raises:
            InvalidState: Describing the first violated invariant.
        """
        cfg = self.config
        if not isinstance(state.phase, Phase):
            raise InvalidState(f"Unknown phase: {state.phase!r}")
        if not math.isfinite(state.stability) or state.stability <= 0:
            raise InvalidState(f"Stability must be positive, got {state.stability}")
        if not math.isfinite(state.difficulty) or not (
            cfg.min_difficulty <= state.difficulty <= cfg.max_difficulty
        ):
            raise InvalidState(
                f"Difficulty {state.difficulty} outside "
                f"[{cfg.min_difficulty}, {cfg.max_difficulty}]"
            )
        if state.repetitions < 0 or state.lapses < 0:
            raise InvalidState("Repetition and lapse counts must be non-negative")
        if state.version < 0:
            raise InvalidState(f"Version must be non-negative, got {state.version}")
        if state.last_reviewed_at is not None and state.due_at < state.last_reviewed_at:
            raise InvalidState("due_at precedes last_reviewed_at")
        if state.phase is Phase.NEW and (state.last_reviewed_at is not None or state.repetitions):
            raise InvalidState("A new card cannot have been reviewed")

    def review(self, state: ReviewState, grade: Grade, now: datetime) -> ReviewResult:
        """Apply a grade to a review state.

        Args:
            state: Current state; must satisfy every invariant.
            grade: The learner's grade.
            now: Time of the review (supplied, never read from the clock).

        Returns:
            ReviewResult with the next state. ``version`` is carried through
            unchanged; the store bumps it when the state is written.

        Raises:
            InvalidGrade: If ``grade`` is not a Grade.
            InvalidState: If ``state`` is already invalid.
        """
        if not isinstance(grade, Grade):
            raise InvalidGrade(f"Expected a Grade, got {grade!r}")
        self.validate(state)

        elapsed_days = self._elapsed_days(state, now)
        difficulty = self._update_difficulty(state.difficulty, grade)

        if grade is Grade.AGAIN:
            new_state = self._fail(state, difficulty, now)
        else:
            new_state = self._succeed(state, grade, difficulty, elapsed_days, now)

        logger.debug(
            "Reviewed %s card with %s: stability %.2f -> %.2f, phase %s, due %s",
            state.phase.value,
            grade.name,
            state.stability,
            new_state.stability,
            new_state.phase.value,
            new_state.due_at,
        )
        return ReviewResult(
            state=new_state,
            interval=new_state.due_at - now,
            elapsed_days=elapsed_days,
        )

    def preview(self, state: ReviewState, now: datetime) -> dict[Grade, ReviewResult]:
        """Return the outcome each grade would produce, without committing to one."""
        return {grade: self.review(state, grade, now) for grade in Grade}

    def stability_factor(self, grade: Grade, difficulty: float, elapsed_days: float) -> float:
        """Multiplier applied to stability after a successful review.

        Always > 1 for Hard, Good and Easy, ordered Easy > Good > Hard.
        """
        if grade is Grade.AGAIN:
            raise InvalidGrade("Again has no growth factor")
        d_max = self.config.max_difficulty
        ease = (d_max + 1 - difficulty) / d_max
        spacing = 1 + ELAPSED_BONUS * math.log1p(max(0.0, elapsed_days))
        return 1 + GRADE_GAIN[grade] * ease * spacing

    def retrievability(self, state: ReviewState, now: datetime) -> float:
        """Estimated recall probability at ``now``.

        Uses the power forgetting curve: R = (1 + t / (9 * S))^(-1).
        A card that has never been reviewed has nothing to recall.
        """
        if state.last_reviewed_at is None:
            return 0.0
        elapsed = self._elapsed_days(state, now)
        if elapsed <= 0:
            return 1.0
        return (1 + elapsed / (9 * state.stability)) ** -1

    def _elapsed_days(self, state: ReviewState, now: datetime) -> float:
        if state.last_reviewed_at is None:
            return self.config.seed_interval_days
        return max(0.0, (now - state.last_reviewed_at).total_seconds() / 86400)

    def _update_difficulty(self, difficulty: float, grade: Grade) -> float:
        cfg = self.config
        step = cfg.difficulty_step
        if grade is Grade.AGAIN:
            difficulty += step
        elif grade is Grade.HARD:
            difficulty += step / 2
        elif grade is Grade.EASY:
            difficulty -= step
        else:
            # Good drifts back toward the neutral starting difficulty
            difficulty += GOOD_REVERSION * (cfg.initial_difficulty - difficulty)
        return max(cfg.min_difficulty, min(cfg.max_difficulty, difficulty))

    def _fail(self, state: ReviewState, difficulty: float, now: datetime) -> ReviewState:
        """Handle an Again grade."""
        cfg = self.config
        due_at = now + cfg.relearning_step

        if state.phase is Phase.NEW:
            # First exposure failed: start learning, nothing to lapse from yet
            return replace(
                state,
                difficulty=difficulty,
                phase=Phase.LEARNING,
                due_at=due_at,
                last_reviewed_at=now,
            )

        phase = Phase.LEARNING if state.phase is Phase.LEARNING else Phase.RELEARNING
        return replace(
            state,
            stability=max(cfg.min_stability, state.stability * cfg.lapse_penalty),
            difficulty=difficulty,
            repetitions=0,
            lapses=state.lapses + 1,
            phase=phase,
            due_at=due_at,
            last_reviewed_at=now,
        )

    def _succeed(
        self,
        state: ReviewState,
        grade: Grade,
        difficulty: float,
        elapsed_days: float,
        now: datetime,
    ) -> ReviewState:
        """Handle a Hard, Good or Easy grade."""
        cfg = self.config
        stability = state.stability * self.stability_factor(grade, state.difficulty, elapsed_days)
        # Intervals are capped, so stability past the cap only risks float overflow
        stability = min(stability, float(cfg.max_interval_days))
        repetitions = state.repetitions + 1
        phase = self._next_phase(state.phase, repetitions)

        if phase in (Phase.LEARNING, Phase.RELEARNING):
            due_at = now + cfg.learning_step
        else:
            days = min(cfg.max_interval_days, max(1, round(stability)))
            due_at = now + timedelta(days=days)

        return replace(
            state,
            stability=stability,
            difficulty=difficulty,
            repetitions=repetitions,
            phase=phase,
            due_at=due_at,
            last_reviewed_at=now,
        )

    def _next_phase(self, phase: Phase, repetitions: int) -> Phase:
        """Phase after a successful review that brought ``repetitions`` to its new value."""
        cfg = self.config
        if phase is Phase.NEW:
            return Phase.LEARNING
        if phase is Phase.LEARNING:
            return Phase.REVIEW if repetitions >= cfg.learning_steps else Phase.LEARNING
        if phase is Phase.RELEARNING:
            return Phase.REVIEW if repetitions >= cfg.relearning_steps else Phase.RELEARNING
        return Phase.REVIEW
