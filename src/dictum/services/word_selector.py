"""Choice of the next target word for an exercise."""
import logging
import random
from collections import Counter
from datetime import datetime, timedelta
from typing import AbstractSet, List, Optional, Sequence

from dictum.config import settings
from dictum.exceptions import NoCandidateWordsError
from dictum.models.engine_models import (
    DifficultyLevel,
    MasterySnapshot,
    PoolWord,
    SelectionReason,
    SelectionResult,
    WordMasteryRecord,
    WordPool,
    WordType,
)
from dictum.services.word_pool import cumulative_tiers
from dictum import monitoring


logger = logging.getLogger(__name__)


def cooldown_duration(review_count: int) -> timedelta:
    """How long a recently practised word rests before it is offered as new again."""
    selection = settings.selection
    if review_count < selection.cooldown_usage_threshold:
        hours = selection.cooldown_base_hours
    else:
        hours = selection.cooldown_base_hours * selection.cooldown_multiplier ** (
            review_count - selection.cooldown_usage_threshold
        )
    return timedelta(hours=min(hours, selection.cooldown_max_hours))


def is_on_cooldown(record: WordMasteryRecord, now: datetime) -> bool:
    return record.last_reviewed_at + cooldown_duration(record.review_count) > now


def due_for_review(mastery: MasterySnapshot, excluded: AbstractSet[str]) -> List[WordMasteryRecord]:
    """Due records, weakest first and then longest unseen first."""
    due = [
        record
        for record in mastery.records
        if record.next_review_date <= mastery.now and record.word.lower() not in excluded
    ]
    return sorted(due, key=lambda r: (r.mastery_level, r.last_reviewed_at))


def select_frequency_words(
    entries: Sequence[PoolWord],
    excluded: AbstractSet[str],
    count: int,
    max_repetitions_per_type: int,
    rng: Optional[random.Random] = None,
) -> List[PoolWord]:
    """Pick up to `count` words, capping each word type on the first pass.

    Candidates are shuffled and taken greedily while their type is under
    `max_repetitions_per_type`. If that leaves the quota unfilled, a second
    pass tops it up from the remaining candidates regardless of type.
    """
    rng = rng or random.Random()
    candidates = [entry for entry in entries if entry.word.lower() not in excluded]
    rng.shuffle(candidates)

    selected: List[PoolWord] = []
    per_type: Counter = Counter()
    for entry in candidates:
        if len(selected) >= count:
            break
        if per_type[entry.word_type] < max_repetitions_per_type:
            selected.append(entry)
            per_type[entry.word_type] += 1

    if len(selected) < count:
        logger.debug(f"Diversity pass filled {len(selected)}/{count}, topping up")
        chosen = {entry.word for entry in selected}
        for entry in candidates:
            if len(selected) >= count:
                break
            if entry.word not in chosen:
                selected.append(entry)
                chosen.add(entry.word)

    return selected


def selection_quality(selected: Sequence[PoolWord], entries: Sequence[PoolWord]) -> int:
    """Half type variety, half how frequent (low rank) the picks are."""
    if not selected or not entries:
        return 0
    variety = len({entry.word_type for entry in selected}) / min(len(selected), len(WordType))
    max_rank = max(entry.rank for entry in entries)
    inverse_rank = sum(1 - (entry.rank - 1) / max_rank for entry in selected) / len(selected)
    return int(round(min(100.0, max(0.0, 50 * variety + 50 * inverse_rank))))


def select_next(
    pool: WordPool,
    mastery: MasterySnapshot,
    excluded: AbstractSet[str],
    difficulty: DifficultyLevel,
    max_repetitions_per_type: Optional[int] = None,
    *,
    rng: Optional[random.Random] = None,
) -> SelectionResult:
    """Choose the next target word.

    Tiers are tried in order: words due for review, then the frequency
    pool, then the fallback list. Only the fallback may hand back an
    excluded word, and only once every fallback word has been excluded.
    """
    if max_repetitions_per_type is None:
        max_repetitions_per_type = settings.selection.max_repetitions_per_type
    alternatives = settings.selection.alternatives
    excluded = {word.lower() for word in excluded}

    due = due_for_review(mastery, excluded)
    if due:
        words = [record.word for record in due]
        monitoring.word_selections.labels(reason=SelectionReason.REVIEW.value).inc()
        logger.info(f"Selected review word {words[0]!r} ({len(due)} due)")
        return SelectionResult(
            word=words[0],
            reason=SelectionReason.REVIEW,
            alternatives=tuple(words[1 : 1 + alternatives]),
            quality=settings.selection.review_quality,
        )

    tiers = cumulative_tiers(difficulty)
    entries = [entry for entry in pool.entries if entry.tier in tiers]
    resting = {
        record.word.lower() for record in mastery.records if is_on_cooldown(record, mastery.now)
    }
    available = [entry for entry in entries if entry.word.lower() not in excluded | resting]
    if not available:
        # Cooldown only thins the pool, it never empties it
        available = entries

    picked = select_frequency_words(
        available, excluded, 1 + alternatives, max_repetitions_per_type, rng
    )
    if picked:
        quality = selection_quality(picked, entries)
        monitoring.word_selections.labels(reason=SelectionReason.FREQUENCY_BASED.value).inc()
        logger.info(f"Selected frequency word {picked[0].word!r} with quality {quality}")
        return SelectionResult(
            word=picked[0].word,
            reason=SelectionReason.FREQUENCY_BASED,
            alternatives=tuple(entry.word for entry in picked[1:]),
            quality=quality,
        )

    if not pool.fallback_words:
        raise NoCandidateWordsError(pool.language, difficulty.value)

    fallback = [word for word in pool.fallback_words if word.lower() not in excluded]
    if not fallback:
        logger.warning(
            f"Every fallback word for {pool.language} ({difficulty.value}) is excluded, reusing the full list"
        )
        fallback = list(pool.fallback_words)

    monitoring.word_selections.labels(reason=SelectionReason.FALLBACK.value).inc()
    logger.info(f"Selected fallback word {fallback[0]!r}")
    return SelectionResult(
        word=fallback[0],
        reason=SelectionReason.FALLBACK,
        alternatives=tuple(fallback[1 : 1 + alternatives]),
        quality=settings.selection.fallback_quality,
    )
