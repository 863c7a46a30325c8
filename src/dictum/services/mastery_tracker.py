"""Per-word mastery levels and review due dates."""
import logging
from datetime import datetime
from typing import List, Optional

from dictum.config import settings
from dictum.models.engine_models import WordMasteryRecord
from dictum.services.interval_ladder import MultiplierLadder
from dictum.services.repositories import WordRepository
from dictum import monitoring


logger = logging.getLogger(__name__)

MASTERY_LADDER = MultiplierLadder()


def update_mastery(
    record: Optional[WordMasteryRecord],
    is_correct: bool,
    now: datetime,
    *,
    user_id: Optional[int] = None,
    word: Optional[str] = None,
    language: Optional[str] = None,
) -> WordMasteryRecord:
    """Apply one pass/fail signal to a word's mastery record.

    With no prior record a new one is started at level 1 and `user_id`,
    `word` and `language` are required. Otherwise the counters are bumped,
    the next review is pushed out by the multiplier ladder (using the level
    held before this attempt) and the level moves by at most one step. The
    returned record keeps the input `version` so the repository can detect
    concurrent writers.
    """
    mastery = settings.mastery

    if record is None:
        if user_id is None or word is None or language is None:
            raise ValueError("user_id, word and language are required for a new record")
        return WordMasteryRecord(
            user_id=user_id,
            word=word,
            language=language,
            mastery_level=mastery.min_level,
            review_count=1,
            correct_count=1 if is_correct else 0,
            last_reviewed_at=now,
            next_review_date=now + MASTERY_LADDER.first_interval(is_correct),
        )

    review_count = record.review_count + 1
    correct_count = record.correct_count + (1 if is_correct else 0)
    accuracy = correct_count / review_count

    next_review_date = now + MASTERY_LADDER.interval(record.mastery_level, is_correct)

    level = record.mastery_level
    if is_correct and accuracy >= mastery.promotion_accuracy:
        level = min(level + 1, mastery.max_level)
    elif not is_correct and accuracy < mastery.demotion_accuracy:
        level = max(level - 1, mastery.min_level)

    return WordMasteryRecord(
        user_id=record.user_id,
        word=record.word,
        language=record.language,
        mastery_level=level,
        review_count=review_count,
        correct_count=correct_count,
        last_reviewed_at=now,
        next_review_date=next_review_date,
        version=record.version,
    )


def is_struggling(record: WordMasteryRecord) -> bool:
    """Whether a word keeps being missed after a few reviews."""
    return (
        record.review_count >= settings.mastery.struggling_min_reviews
        and record.accuracy < settings.mastery.demotion_accuracy
    )


def is_word_mastered(record: Optional[WordMasteryRecord]) -> bool:
    """Whether a word counts as known."""
    return record is not None and record.mastery_level >= settings.mastery.mastered_level


class MasteryTracker:
    """Applies mastery updates against the latest stored record."""

    def __init__(self, word_repository: WordRepository):
        """Initialize the tracker with a word repository."""
        self.word_repository = word_repository

    def record_attempt(
        self, user_id: int, word: str, language: str, is_correct: bool, now: datetime
    ) -> WordMasteryRecord:
        """Read the current record, apply the attempt and write it back.

        Propagates ConflictError when another writer got there first and
        RepositoryUnavailableError when storage fails; the caller decides
        whether to retry.
        """
        current = self.word_repository.get_mastery(user_id, word, language)
        if current is not None and current.last_reviewed_at > now:
            # Late attempt (a replayed queued write): never move the record back in time
            logger.debug(f"Attempt on {word!r} at {now} predates stored review at {current.last_reviewed_at}")
            now = current.last_reviewed_at
        updated = update_mastery(
            current, is_correct, now, user_id=user_id, word=word, language=language
        )
        stored = self.word_repository.upsert_mastery(updated)
        monitoring.mastery_updates.labels(outcome="correct" if is_correct else "incorrect").inc()
        logger.info(
            f"Mastery of {word!r} for user {user_id}: level {stored.mastery_level}, "
            f"{stored.correct_count}/{stored.review_count} correct, next review {stored.next_review_date}"
        )
        return stored

    def due_words(self, user_id: int, language: str, now: datetime) -> List[WordMasteryRecord]:
        """Words due for review, weakest and longest unseen first."""
        return self.word_repository.get_due_words(user_id, language, now)
