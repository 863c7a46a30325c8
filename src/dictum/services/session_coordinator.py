"""Orchestration of one practice session."""
import logging
import random
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from dictum.config import settings
from dictum.exceptions import ConflictError, RepositoryUnavailableError, SessionStateError
from dictum.models.engine_models import (
    AttemptResult,
    DifficultyLevel,
    Direction,
    ExerciseMode,
    MasterySnapshot,
    PendingAttempt,
    PracticeSummary,
    ReviewEvent,
    SelectionResult,
    SessionState,
    WordMasteryRecord,
    WordUsage,
)
from dictum.services.aligner import score, tokenize
from dictum.services.mastery_tracker import MasteryTracker, update_mastery
from dictum.services.repositories import (
    ExerciseRepository,
    PracticeSessionRepository,
    WordRepository,
)
from dictum.services.review_scheduler import ReviewScheduler
from dictum.services.word_pool import StaticWordPoolProvider, WordPoolProvider
from dictum.services.word_selector import select_next
from dictum import monitoring


logger = logging.getLogger(__name__)

# First try plus one retry with a fresh read
WRITE_ATTEMPTS = 2


class SessionPhase(Enum):
    """Where the coordinator is within a session."""
    IDLE = "idle"
    AWAITING_ANSWER = "awaiting_answer"
    SCORING = "scoring"
    UPDATING = "updating"
    ENDED = "ended"


@dataclass(frozen=True)
class SubmissionOutcome:
    """Everything a caller needs after one answer."""
    word: str
    is_correct: bool
    result: Optional[AttemptResult]  # None for skipped answers
    mastery: WordMasteryRecord
    mastery_persisted: bool
    review_event: Optional[ReviewEvent]
    next_selection: Optional[SelectionResult]
    ended: bool


class SessionCoordinator:
    """Runs a practice session for one user and language."""

    def __init__(
        self,
        user_id: int,
        language: str,
        word_repository: WordRepository,
        exercise_repository: Optional[ExerciseRepository] = None,
        session_repository: Optional[PracticeSessionRepository] = None,
        pool_provider: Optional[WordPoolProvider] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the coordinator with its collaborators."""
        self.user_id = user_id
        self.language = language
        self.word_repository = word_repository
        self.mastery_tracker = MasteryTracker(word_repository)
        self.review_scheduler = ReviewScheduler(exercise_repository) if exercise_repository else None
        self.session_repository = session_repository
        self.pool_provider = pool_provider or StaticWordPoolProvider()
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(UTC))

        self.phase = SessionPhase.IDLE
        self.state: Optional[SessionState] = None
        self.current: Optional[SelectionResult] = None
        self.summary: Optional[PracticeSummary] = None
        # Latest record per word seen this session, persisted or not
        self._known: Dict[str, WordMasteryRecord] = {}

    def _require(self, *phases: SessionPhase) -> None:
        if self.phase not in phases:
            raise SessionStateError(
                f"Session is {self.phase.value}, expected {' or '.join(p.value for p in phases)}"
            )

    def start_session(self, difficulty: Optional[DifficultyLevel] = None) -> SelectionResult:
        """Reset the session state and pick the first target word.

        Mastery writes still queued from the previous session carry over.
        """
        self._require(SessionPhase.IDLE, SessionPhase.ENDED)
        if difficulty is None:
            difficulty = DifficultyLevel(settings.session.default_difficulty)

        carried = list(self.state.pending_writes) if self.state is not None else []
        self.state = SessionState(difficulty=difficulty, started_at=self.clock(), pending_writes=carried)
        self.summary = None
        self._known = {}
        if carried:
            logger.warning(f"Carrying {len(carried)} queued mastery writes into the new session")

        self.current = self._select_next()
        self.phase = SessionPhase.AWAITING_ANSWER
        monitoring.practice_sessions.inc()
        monitoring.active_sessions.inc()
        logger.info(f"Started {difficulty.value} session for user {self.user_id} ({self.language})")
        return self.current

    def _snapshot(self, now: datetime) -> MasterySnapshot:
        try:
            records = {r.word: r for r in self.word_repository.get_user_records(self.user_id, self.language)}
        except RepositoryUnavailableError as e:
            logger.warning(f"Mastery records unavailable, selecting without them: {e}")
            records = {}
        records.update(self._known)
        return MasterySnapshot(records=tuple(records.values()), now=now)

    def _select_next(self) -> SelectionResult:
        pool = self.pool_provider.get_pool(self.language, self.state.difficulty)
        return select_next(
            pool,
            self._snapshot(self.clock()),
            self.state.excluded_words,
            self.state.difficulty,
            settings.selection.max_repetitions_per_type,
            rng=self.rng,
        )

    @staticmethod
    def _judge(result: AttemptResult, answer: str, target_word: str, mode: ExerciseMode) -> bool:
        if mode == ExerciseMode.CLOZE:
            return bool(tokenize(answer)) and tokenize(answer) == tokenize(target_word)
        return result.accuracy >= settings.scoring.dictation_threshold

    def submit_answer(
        self,
        answer: str,
        *,
        reference: Optional[str] = None,
        mode: ExerciseMode = ExerciseMode.CLOZE,
        target_word: Optional[str] = None,
        exercise_id: Optional[int] = None,
        direction: Optional[Direction] = None,
        is_skipped: bool = False,
    ) -> SubmissionOutcome:
        """Score an answer, update progress and pick the next word.

        `reference` is the exercise text the answer is compared with; for a
        cloze exercise without one the target word itself is used.
        `target_word` defaults to the current selection. Passing
        `exercise_id` and `direction` also advances that exercise's review
        ladder.
        """
        self._require(SessionPhase.AWAITING_ANSWER)
        if exercise_id is not None and direction is None:
            raise ValueError("direction is required for bidirectional exercises")
        if exercise_id is not None and self.review_scheduler is None:
            raise ValueError("No exercise repository configured for bidirectional exercises")
        if exercise_id is not None:
            # Raises ExerciseNotFoundError before anything is recorded
            self.review_scheduler.status(exercise_id)

        target = target_word or self.current.word
        word = target.strip().lower()

        self.phase = SessionPhase.SCORING
        result: Optional[AttemptResult] = None
        try:
            if is_skipped:
                is_correct = False
            else:
                result = score(reference if reference is not None else target, answer)
                is_correct = self._judge(result, answer, target, mode)
        except Exception:
            self.phase = SessionPhase.AWAITING_ANSWER
            raise

        self.phase = SessionPhase.UPDATING
        now = self.clock()
        try:
            mastery, persisted = self._update_mastery(word, is_correct, now)
            state = self._count_attempt(word, is_correct, now)
            logger.info(
                f"User {self.user_id} answered {word!r} {'correctly' if is_correct else 'incorrectly'}"
                f"{' (skipped)' if is_skipped else ''}, {state.total_correct}/{state.total_attempts} this session"
            )

            review_event = None
            if exercise_id is not None:
                review_event = self._record_review(exercise_id, direction, is_correct, now)

            next_selection = None
            ended = state.total_attempts >= settings.session.max_exercises
            if ended:
                self._close()
            else:
                next_selection = self._select_next()
                self.current = next_selection
                self.phase = SessionPhase.AWAITING_ANSWER
        except Exception:
            # Whatever was recorded stays recorded; the learner can answer again or end
            if self.phase == SessionPhase.UPDATING:
                self.phase = SessionPhase.AWAITING_ANSWER
            raise

        return SubmissionOutcome(
            word=word,
            is_correct=is_correct,
            result=result,
            mastery=mastery,
            mastery_persisted=persisted,
            review_event=review_event,
            next_selection=next_selection,
            ended=ended,
        )

    def _count_attempt(self, word: str, is_correct: bool, now: datetime) -> SessionState:
        state = self.state
        state.total_attempts += 1
        state.total_correct += 1 if is_correct else 0
        state.excluded_words.add(word)
        usage = state.word_usage.setdefault(word, WordUsage())
        usage.attempts += 1
        usage.correct += 1 if is_correct else 0
        usage.last_used = now
        return state

    def _update_mastery(self, word: str, is_correct: bool, now: datetime) -> Tuple[WordMasteryRecord, bool]:
        for attempt in range(1, WRITE_ATTEMPTS + 1):
            try:
                stored = self.mastery_tracker.record_attempt(
                    self.user_id, word, self.language, is_correct, now
                )
                self._known[word] = stored
                return stored, True
            except (ConflictError, RepositoryUnavailableError) as e:
                logger.warning(f"Mastery write for {word!r} failed (attempt {attempt}/{WRITE_ATTEMPTS}): {e}")

        # Keep the learner going on an in-memory value and queue the attempt
        transient = update_mastery(
            self._known.get(word), is_correct, now,
            user_id=self.user_id, word=word, language=self.language,
        )
        self._known[word] = transient
        self.state.pending_writes.append(PendingAttempt(word, is_correct, now))
        monitoring.pending_writes.inc()
        logger.error(f"Mastery write for {word!r} queued after {WRITE_ATTEMPTS} failed attempts")
        return transient, False

    def _record_review(
        self, exercise_id: int, direction: Direction, is_correct: bool, now: datetime
    ) -> Optional[ReviewEvent]:
        for attempt in range(1, WRITE_ATTEMPTS + 1):
            try:
                return self.review_scheduler.record_review(exercise_id, direction, is_correct, now)
            except (ConflictError, RepositoryUnavailableError) as e:
                logger.warning(
                    f"Review of exercise {exercise_id} failed (attempt {attempt}/{WRITE_ATTEMPTS}): {e}"
                )
        logger.error(f"Review of exercise {exercise_id} {direction.value} dropped after retries")
        return None

    def flush_pending_writes(self) -> int:
        """Replay queued mastery attempts against fresh reads. Returns how many landed."""
        if self.state is None:
            return 0
        remaining: List[PendingAttempt] = []
        flushed = 0
        for pending in self.state.pending_writes:
            try:
                stored = self.mastery_tracker.record_attempt(
                    self.user_id, pending.word, self.language, pending.is_correct, pending.attempted_at
                )
                self._known[pending.word] = stored
                flushed += 1
            except (ConflictError, RepositoryUnavailableError) as e:
                logger.warning(f"Queued mastery write for {pending.word!r} still failing: {e}")
                remaining.append(pending)
        self.state.pending_writes = remaining
        return flushed

    def end_session(self) -> PracticeSummary:
        """Persist the session aggregate and clear the session's exclusions."""
        if self.phase == SessionPhase.ENDED and self.summary is not None:
            return self.summary
        self._require(SessionPhase.AWAITING_ANSWER)
        return self._close()

    def _close(self) -> PracticeSummary:
        state = self.state
        if state.pending_writes:
            self.flush_pending_writes()
        if state.pending_writes:
            logger.warning(
                f"{len(state.pending_writes)} mastery writes still queued at session end "
                f"({', '.join(p.word for p in state.pending_writes)}); kept for the next session"
            )

        summary = PracticeSummary(
            user_id=self.user_id,
            language=self.language,
            difficulty=state.difficulty,
            total_attempts=state.total_attempts,
            total_correct=state.total_correct,
            started_at=state.started_at,
            ended_at=self.clock(),
        )
        if self.session_repository is not None:
            try:
                self.session_repository.save_session(summary)
            except RepositoryUnavailableError as e:
                logger.warning(f"Session aggregate for user {self.user_id} not saved: {e}")

        state.excluded_words.clear()
        self.summary = summary
        self.current = None
        self.phase = SessionPhase.ENDED
        monitoring.active_sessions.dec()
        logger.info(
            f"Ended session for user {self.user_id}: {summary.total_correct}/{summary.total_attempts} correct"
        )
        return summary

    def recommended_difficulty(self) -> DifficultyLevel:
        """Difficulty for the next session based on this session's accuracy."""
        if self.state is None:
            return DifficultyLevel(settings.session.default_difficulty)
        current = self.state.difficulty
        if self.state.total_attempts < settings.session.min_attempts_for_adaptation:
            return current

        ordered = DifficultyLevel.ordered()
        index = ordered.index(current)
        if self.state.accuracy > settings.session.step_up_accuracy and index < len(ordered) - 1:
            return ordered[index + 1]
        if self.state.accuracy < settings.session.step_down_accuracy and index > 0:
            return ordered[index - 1]
        return current
