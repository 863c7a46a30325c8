"""Bidirectional review ladder for sentence exercises."""
import logging
import re
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from dictum.config import (
    REVIEW_INTERVAL_AFTER_LADDER,
    REVIEW_INTERVAL_ON_FAILURE,
    REVIEW_INTERVALS,
    REVIEW_MASTERY_ROUND,
)
from dictum.exceptions import ExerciseNotFoundError
from dictum.models.engine_models import (
    BidirectionalExercise,
    Direction,
    DueDate,
    ExerciseStatus,
    ReviewEvent,
)
from dictum.services.interval_ladder import TableLadder
from dictum.services.repositories import ExerciseRepository
from dictum import monitoring


logger = logging.getLogger(__name__)

REVIEW_LADDER = TableLadder(
    REVIEW_INTERVALS,
    beyond=REVIEW_INTERVAL_AFTER_LADDER,
    on_failure=REVIEW_INTERVAL_ON_FAILURE,
)

# Words shorter than this are not recorded as mastered
MIN_MASTERED_WORD_LENGTH = 3


def due_value(now: datetime, delta: timedelta) -> DueDate:
    """Full timestamp for sub-day delays, calendar date otherwise."""
    due = now + delta
    if delta < timedelta(hours=24):
        return due
    return due.date()


def advance_review(
    exercise_id: int,
    direction: Direction,
    history: Sequence[ReviewEvent],
    is_correct: bool,
    now: datetime,
) -> Tuple[DueDate, ReviewEvent]:
    """Compute the next due date and the event for one review attempt.

    The round is the number of earlier attempts in this direction plus one.
    It only grows: a failed attempt still consumes a round, it merely gets
    the short failure interval instead of the table entry.
    """
    current_round = len(history) + 1
    due = due_value(now, REVIEW_LADDER.interval(current_round, is_correct))
    event = ReviewEvent(
        exercise_id=exercise_id,
        direction=direction,
        round=current_round,
        is_correct=is_correct,
        due_date=due,
        completed_at=now,
    )
    return due, event


def _direction_complete(events: Sequence[ReviewEvent]) -> bool:
    return any(event.is_correct and event.round >= REVIEW_MASTERY_ROUND for event in events)


def check_mastered(
    forward_events: Sequence[ReviewEvent], backward_events: Sequence[ReviewEvent]
) -> bool:
    """Both directions need a correct review at the final ladder round or later."""
    return _direction_complete(forward_events) and _direction_complete(backward_events)


def is_due(event: Optional[ReviewEvent], now: datetime) -> bool:
    """Whether the direction whose latest event is `event` needs a review."""
    if event is None:
        return True
    if isinstance(event.due_date, datetime):
        return event.due_date <= now
    return event.due_date <= now.date()


def extract_mastered_words(sentence: str) -> List[str]:
    """Distinct lower-cased words of a sentence worth recording as mastered."""
    words = re.sub(r"[^\w\s]", "", sentence.lower()).split()
    return sorted({word for word in words if len(word) >= MIN_MASTERED_WORD_LENGTH})


class ReviewScheduler:
    """Drives exercises through the review ladder using an exercise repository."""

    def __init__(self, exercise_repository: ExerciseRepository):
        """Initialize the scheduler with an exercise repository."""
        self.exercise_repository = exercise_repository

    def _get_exercise(self, exercise_id: int) -> BidirectionalExercise:
        exercise = self.exercise_repository.get_exercise(exercise_id)
        if not exercise:
            raise ExerciseNotFoundError(exercise_id)
        return exercise

    def create_exercise(
        self, user_id: int, sentence: str, language: str, support_language: Optional[str] = None
    ) -> BidirectionalExercise:
        """Create an exercise in the learning state."""
        if not sentence or not sentence.strip():
            raise ValueError("Exercise sentence must not be empty")
        exercise = self.exercise_repository.create_exercise(
            user_id, sentence.strip(), language, support_language
        )
        logger.info(f"Created exercise {exercise.id} for user {user_id}")
        return exercise

    def promote_to_reviewing(self, exercise_id: int) -> None:
        """Move a learning exercise into the review ladder."""
        exercise = self._get_exercise(exercise_id)
        if exercise.status != ExerciseStatus.LEARNING:
            logger.debug(f"Exercise {exercise_id} already {exercise.status.value}, not promoting")
            return
        self.exercise_repository.set_exercise_status(exercise_id, ExerciseStatus.REVIEWING)

    def status(self, exercise_id: int) -> ExerciseStatus:
        """Current lifecycle status of an exercise."""
        return self._get_exercise(exercise_id).status

    def record_review(
        self, exercise_id: int, direction: Direction, is_correct: bool, now: datetime
    ) -> ReviewEvent:
        """Log one review attempt and promote the exercise once it is mastered.

        Raises ConflictError if a concurrent attempt already took this round.
        """
        exercise = self._get_exercise(exercise_id)
        history = self.exercise_repository.get_review_events(exercise_id, direction)
        _, event = advance_review(exercise_id, direction, history, is_correct, now)
        self.exercise_repository.append_review_event(event)
        monitoring.review_events.labels(
            direction=direction.value, outcome="correct" if is_correct else "incorrect"
        ).inc()
        logger.info(
            f"Exercise {exercise_id} {direction.value} round {event.round} "
            f"{'correct' if is_correct else 'incorrect'}, due {event.due_date}"
        )

        # Mastery is sticky, a mastered exercise never goes back
        if exercise.status != ExerciseStatus.MASTERED and is_correct:
            forward = self.exercise_repository.get_review_events(exercise_id, Direction.FORWARD)
            backward = self.exercise_repository.get_review_events(exercise_id, Direction.BACKWARD)
            if check_mastered(forward, backward):
                self._mark_mastered(exercise)

        return event

    def _mark_mastered(self, exercise: BidirectionalExercise) -> None:
        self.exercise_repository.set_exercise_status(exercise.id, ExerciseStatus.MASTERED)
        monitoring.exercises_mastered.inc()
        added = self.exercise_repository.add_mastered_words(
            exercise.user_id,
            exercise.id,
            exercise.language,
            extract_mastered_words(exercise.sentence),
        )
        logger.info(f"Exercise {exercise.id} mastered, {added} new mastered words")

    def due_reviews(
        self, user_id: int, now: datetime
    ) -> List[Tuple[BidirectionalExercise, Direction]]:
        """Review directions due among the user's exercises in the review ladder."""
        due: List[Tuple[BidirectionalExercise, Direction]] = []
        for exercise in self.exercise_repository.list_exercises(user_id, ExerciseStatus.REVIEWING):
            for direction in (Direction.FORWARD, Direction.BACKWARD):
                events = self.exercise_repository.get_review_events(exercise.id, direction)
                if is_due(events[-1] if events else None, now):
                    due.append((exercise, direction))
        return due
