"""Storage collaborators consumed by the engine, with SQLAlchemy implementations."""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Iterable, Iterator, List, Optional

from sqlalchemy import and_, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from dictum.exceptions import ConflictError, ExerciseNotFoundError, RepositoryUnavailableError
from dictum.models.engine_models import (
    BidirectionalExercise,
    Direction,
    ExerciseStatus,
    PracticeSummary,
    ReviewEvent,
    WordMasteryRecord,
)
from dictum.models.models import Exercise, MasteredWord, PracticeSession, ReviewLog, WordMastery
from dictum import monitoring


logger = logging.getLogger(__name__)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes coming back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class WordRepository(ABC):
    """Persistence of word mastery records keyed by (user, word, language)."""

    @abstractmethod
    def get_mastery(self, user_id: int, word: str, language: str) -> Optional[WordMasteryRecord]:
        """Latest stored record for the key, if any."""

    @abstractmethod
    def get_due_words(self, user_id: int, language: str, now: datetime) -> List[WordMasteryRecord]:
        """Records whose next review is at or before `now`."""

    @abstractmethod
    def get_user_records(self, user_id: int, language: str) -> List[WordMasteryRecord]:
        """Every record of a user for one language."""

    @abstractmethod
    def upsert_mastery(self, record: WordMasteryRecord) -> WordMasteryRecord:
        """Write the record if nobody changed it since it was read.

        Raises ConflictError when the stored version differs from
        `record.version`, or when a record with version 0 already exists.
        """


class ExerciseRepository(ABC):
    """Persistence of bidirectional exercises and their review log."""

    @abstractmethod
    def create_exercise(
        self, user_id: int, sentence: str, language: str, support_language: Optional[str] = None
    ) -> BidirectionalExercise:
        """Store a new exercise in the learning state."""

    @abstractmethod
    def get_exercise(self, exercise_id: int) -> Optional[BidirectionalExercise]:
        """Exercise by id, if it exists."""

    @abstractmethod
    def list_exercises(
        self, user_id: int, status: Optional[ExerciseStatus] = None
    ) -> List[BidirectionalExercise]:
        """Exercises of a user, optionally filtered by status."""

    @abstractmethod
    def get_review_events(self, exercise_id: int, direction: Direction) -> List[ReviewEvent]:
        """Review log of one direction, oldest first."""

    @abstractmethod
    def append_review_event(self, event: ReviewEvent) -> ReviewEvent:
        """Append an event; raises ConflictError if its round is already logged."""

    @abstractmethod
    def set_exercise_status(self, exercise_id: int, status: ExerciseStatus) -> None:
        """Change the lifecycle status of an exercise."""

    @abstractmethod
    def add_mastered_words(
        self, user_id: int, exercise_id: int, language: str, words: Iterable[str]
    ) -> int:
        """Store mastered words, skipping those already known. Returns the number added."""


class PracticeSessionRepository(ABC):
    """Persistence of finished session aggregates."""

    @abstractmethod
    def save_session(self, summary: PracticeSummary) -> int:
        """Store the aggregate and return its id."""


@contextmanager
def _guard(db: Session, operation: str) -> Iterator[None]:
    """Roll back and translate database errors into engine errors."""
    try:
        yield
    except (ConflictError, ExerciseNotFoundError):
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        monitoring.repository_errors.labels(error_type="conflict").inc()
        logger.warning(f"Integrity conflict during {operation}: {e}")
        raise ConflictError(f"Concurrent write detected during {operation}") from e
    except (OperationalError, DBAPIError) as e:
        db.rollback()
        monitoring.repository_errors.labels(error_type="unavailable").inc()
        logger.error(f"Database error during {operation}: {e}")
        raise RepositoryUnavailableError(f"Database unavailable during {operation}") from e


class SqlWordRepository(WordRepository):
    """Word mastery records stored with SQLAlchemy."""

    def __init__(self, db: Session):
        """Initialize the repository with a database session."""
        self.db = db

    @staticmethod
    def _to_record(row: WordMastery) -> WordMasteryRecord:
        return WordMasteryRecord(
            user_id=row.user_id,
            word=row.word,
            language=row.language,
            mastery_level=row.mastery_level,
            review_count=row.review_count,
            correct_count=row.correct_count,
            last_reviewed_at=as_utc(row.last_reviewed_at),
            next_review_date=as_utc(row.next_review_date),
            version=row.version,
        )

    def get_mastery(self, user_id: int, word: str, language: str) -> Optional[WordMasteryRecord]:
        with _guard(self.db, "get_mastery"):
            # Always read the committed value, not a cached identity
            self.db.expire_all()
            row = (
                self.db.query(WordMastery)
                .filter(
                    and_(
                        WordMastery.user_id == user_id,
                        WordMastery.word == word,
                        WordMastery.language == language,
                    )
                )
                .first()
            )
            return self._to_record(row) if row else None

    def get_due_words(self, user_id: int, language: str, now: datetime) -> List[WordMasteryRecord]:
        with _guard(self.db, "get_due_words"):
            rows = (
                self.db.query(WordMastery)
                .filter(
                    and_(
                        WordMastery.user_id == user_id,
                        WordMastery.language == language,
                        WordMastery.next_review_date <= as_utc(now),
                    )
                )
                .order_by(WordMastery.mastery_level.asc(), WordMastery.last_reviewed_at.asc())
                .all()
            )
            return [self._to_record(row) for row in rows]

    def get_user_records(self, user_id: int, language: str) -> List[WordMasteryRecord]:
        with _guard(self.db, "get_user_records"):
            rows = (
                self.db.query(WordMastery)
                .filter(WordMastery.user_id == user_id, WordMastery.language == language)
                .all()
            )
            return [self._to_record(row) for row in rows]

    def upsert_mastery(self, record: WordMasteryRecord) -> WordMasteryRecord:
        with _guard(self.db, "upsert_mastery"):
            values = dict(
                mastery_level=record.mastery_level,
                review_count=record.review_count,
                correct_count=record.correct_count,
                last_reviewed_at=as_utc(record.last_reviewed_at),
                next_review_date=as_utc(record.next_review_date),
                version=record.version + 1,
            )
            if record.version == 0:
                row = WordMastery(
                    user_id=record.user_id,
                    word=record.word,
                    language=record.language,
                    **values,
                )
                self.db.add(row)
                self.db.commit()
            else:
                result = self.db.execute(
                    update(WordMastery)
                    .where(
                        and_(
                            WordMastery.user_id == record.user_id,
                            WordMastery.word == record.word,
                            WordMastery.language == record.language,
                            WordMastery.version == record.version,
                        )
                    )
                    .values(**values)
                )
                if result.rowcount == 0:
                    monitoring.repository_errors.labels(error_type="conflict").inc()
                    raise ConflictError(
                        f"Mastery record for {record.word!r} changed since version {record.version}"
                    )
                self.db.commit()

        logger.debug(f"Stored mastery for user {record.user_id}, word {record.word!r}, version {record.version + 1}")
        return WordMasteryRecord(
            user_id=record.user_id,
            word=record.word,
            language=record.language,
            mastery_level=record.mastery_level,
            review_count=record.review_count,
            correct_count=record.correct_count,
            last_reviewed_at=record.last_reviewed_at,
            next_review_date=record.next_review_date,
            version=record.version + 1,
        )


class SqlExerciseRepository(ExerciseRepository):
    """Bidirectional exercises and review events stored with SQLAlchemy."""

    def __init__(self, db: Session):
        """Initialize the repository with a database session."""
        self.db = db

    @staticmethod
    def _to_exercise(row: Exercise) -> BidirectionalExercise:
        return BidirectionalExercise(
            id=row.id,
            user_id=row.user_id,
            sentence=row.sentence,
            language=row.language,
            status=ExerciseStatus(row.status),
            support_language=row.support_language,
        )

    @staticmethod
    def _to_event(row: ReviewLog) -> ReviewEvent:
        due = as_utc(row.due_at) if row.due_at is not None else row.due_on
        return ReviewEvent(
            exercise_id=row.exercise_id,
            direction=Direction(row.direction),
            round=row.round,
            is_correct=row.is_correct,
            due_date=due,
            completed_at=as_utc(row.completed_at),
        )

    def _get_row(self, exercise_id: int) -> Exercise:
        row = self.db.query(Exercise).filter(Exercise.id == exercise_id).first()
        if not row:
            raise ExerciseNotFoundError(exercise_id)
        return row

    def create_exercise(
        self, user_id: int, sentence: str, language: str, support_language: Optional[str] = None
    ) -> BidirectionalExercise:
        with _guard(self.db, "create_exercise"):
            row = Exercise(
                user_id=user_id,
                sentence=sentence,
                language=language,
                support_language=support_language,
                status=ExerciseStatus.LEARNING.value,
            )
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            return self._to_exercise(row)

    def get_exercise(self, exercise_id: int) -> Optional[BidirectionalExercise]:
        with _guard(self.db, "get_exercise"):
            row = self.db.query(Exercise).filter(Exercise.id == exercise_id).first()
            return self._to_exercise(row) if row else None

    def list_exercises(
        self, user_id: int, status: Optional[ExerciseStatus] = None
    ) -> List[BidirectionalExercise]:
        with _guard(self.db, "list_exercises"):
            query = self.db.query(Exercise).filter(Exercise.user_id == user_id)
            if status is not None:
                query = query.filter(Exercise.status == status.value)
            return [self._to_exercise(row) for row in query.order_by(Exercise.id).all()]

    def get_review_events(self, exercise_id: int, direction: Direction) -> List[ReviewEvent]:
        with _guard(self.db, "get_review_events"):
            rows = (
                self.db.query(ReviewLog)
                .filter(
                    and_(
                        ReviewLog.exercise_id == exercise_id,
                        ReviewLog.direction == direction.value,
                    )
                )
                .order_by(ReviewLog.round.asc())
                .all()
            )
            return [self._to_event(row) for row in rows]

    def append_review_event(self, event: ReviewEvent) -> ReviewEvent:
        with _guard(self.db, "append_review_event"):
            self._get_row(event.exercise_id)
            if isinstance(event.due_date, datetime):
                due_at, due_on = as_utc(event.due_date), None
            else:
                due_at, due_on = None, event.due_date
            row = ReviewLog(
                exercise_id=event.exercise_id,
                direction=event.direction.value,
                round=event.round,
                is_correct=event.is_correct,
                due_at=due_at,
                due_on=due_on,
                completed_at=as_utc(event.completed_at),
            )
            self.db.add(row)
            self.db.commit()
        return event

    def set_exercise_status(self, exercise_id: int, status: ExerciseStatus) -> None:
        with _guard(self.db, "set_exercise_status"):
            row = self._get_row(exercise_id)
            row.status = status.value
            self.db.commit()
        logger.info(f"Exercise {exercise_id} status set to {status.value}")

    def add_mastered_words(
        self, user_id: int, exercise_id: int, language: str, words: Iterable[str]
    ) -> int:
        with _guard(self.db, "add_mastered_words"):
            wanted = sorted(set(words))
            if not wanted:
                return 0
            existing = {
                word
                for (word,) in self.db.query(MasteredWord.word).filter(
                    MasteredWord.user_id == user_id,
                    MasteredWord.language == language,
                    MasteredWord.word.in_(wanted),
                )
            }
            new_words = [word for word in wanted if word not in existing]
            self.db.add_all(
                MasteredWord(user_id=user_id, exercise_id=exercise_id, word=word, language=language)
                for word in new_words
            )
            self.db.commit()
            return len(new_words)


class SqlPracticeSessionRepository(PracticeSessionRepository):
    """Session aggregates stored with SQLAlchemy."""

    def __init__(self, db: Session):
        """Initialize the repository with a database session."""
        self.db = db

    def save_session(self, summary: PracticeSummary) -> int:
        with _guard(self.db, "save_session"):
            row = PracticeSession(
                user_id=summary.user_id,
                language=summary.language,
                difficulty=summary.difficulty.value,
                total_attempts=summary.total_attempts,
                total_correct=summary.total_correct,
                started_at=as_utc(summary.started_at),
                ended_at=as_utc(summary.ended_at),
            )
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            return row.id
