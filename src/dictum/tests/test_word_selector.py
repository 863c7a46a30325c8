"""Tests for next-word selection."""
import json
import random
from collections import Counter
from datetime import UTC, datetime, timedelta

import pytest
from faker import Faker

from dictum.exceptions import NoCandidateWordsError
from dictum.models.engine_models import (
    DifficultyLevel,
    MasterySnapshot,
    PoolWord,
    SelectionReason,
    WordMasteryRecord,
    WordPool,
    WordType,
)
from dictum.services.word_pool import StaticWordPoolProvider, cumulative_tiers
from dictum.services.word_selector import (
    cooldown_duration,
    due_for_review,
    is_on_cooldown,
    select_frequency_words,
    select_next,
    selection_quality,
)

fake = Faker()

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
TYPES = [WordType.NOUN, WordType.VERB, WordType.ADJECTIVE, WordType.OTHER]


def make_pool(words_per_type: int = 4, fallback=("the", "a", "an")) -> WordPool:
    entries = []
    for i in range(words_per_type):
        for word_type in TYPES:
            entries.append(
                PoolWord(word=f"{word_type.value}{i}", rank=len(entries) + 1, word_type=word_type)
            )
    return WordPool("english", DifficultyLevel.BEGINNER, tuple(entries), tuple(fallback))


def make_record(word: str, level: int = 1, due_in: timedelta = timedelta(days=-1), **overrides) -> WordMasteryRecord:
    values = dict(
        user_id=1,
        word=word,
        language="english",
        mastery_level=level,
        review_count=1,
        correct_count=1,
        last_reviewed_at=NOW - timedelta(days=2),
        next_review_date=NOW + due_in,
        version=1,
    )
    values.update(overrides)
    return WordMasteryRecord(**values)


def snapshot(*records: WordMasteryRecord) -> MasterySnapshot:
    return MasterySnapshot(records=tuple(records), now=NOW)


def test_excluded_words_never_returned() -> None:
    """Test that excluded words are skipped while candidates remain."""
    pool = make_pool()
    rng = random.Random(3)
    excluded = set()
    for _ in range(len(pool.entries)):
        result = select_next(pool, snapshot(), excluded, DifficultyLevel.BEGINNER, rng=rng)
        assert result.reason == SelectionReason.FREQUENCY_BASED
        assert result.word not in excluded
        assert result.word not in result.alternatives
        assert set(result.alternatives).isdisjoint(excluded)
        excluded.add(result.word)

    assert len(excluded) == len(pool.entries)


def test_exclusion_is_case_insensitive() -> None:
    """Test that exclusions match regardless of case."""
    pool = WordPool(
        "english",
        DifficultyLevel.BEGINNER,
        (PoolWord("House", 1, WordType.NOUN), PoolWord("tree", 2, WordType.NOUN)),
        ("the",),
    )
    for _ in range(10):
        result = select_next(pool, snapshot(), {"HOUSE"}, DifficultyLevel.BEGINNER)
        assert result.word == "tree"


def test_type_diversity_cap() -> None:
    """Test that no word type appears more than twice among eight picks."""
    pool = make_pool(words_per_type=4)
    for seed in range(10):
        picked = select_frequency_words(pool.entries, set(), 8, 2, random.Random(seed))
        counts = Counter(entry.word_type for entry in picked)
        assert len(picked) == 8
        assert all(count == 2 for count in counts.values())
        assert len(counts) == 4


def test_diversity_tops_up_when_types_run_out() -> None:
    """Test the second pass when one type dominates."""
    entries = [PoolWord(f"noun{i}", i + 1, WordType.NOUN) for i in range(5)]
    picked = select_frequency_words(entries, set(), 4, 2, random.Random(1))

    assert len(picked) == 4
    assert len({entry.word for entry in picked}) == 4


def test_review_words_come_first() -> None:
    """Test that due words win and the weakest, longest unseen leads."""
    mastery = snapshot(
        make_record("strong", level=5),
        make_record("recent", level=1, last_reviewed_at=NOW - timedelta(days=1)),
        make_record("stale", level=1, last_reviewed_at=NOW - timedelta(days=9)),
        make_record("later", level=1, due_in=timedelta(days=1)),
    )
    result = select_next(make_pool(), mastery, set(), DifficultyLevel.BEGINNER)

    assert result.reason == SelectionReason.REVIEW
    assert result.word == "stale"
    assert result.alternatives == ("recent", "strong")
    assert result.quality == 90


def test_due_for_review_skips_excluded() -> None:
    """Test that excluded due words are not offered."""
    mastery = snapshot(make_record("stale"), make_record("fresh", due_in=timedelta(days=2)))
    assert due_for_review(mastery, {"stale"}) == []

    result = select_next(make_pool(), mastery, {"stale"}, DifficultyLevel.BEGINNER)
    assert result.reason == SelectionReason.FREQUENCY_BASED


def test_due_exactly_now() -> None:
    """Test that a word due at this instant counts as due."""
    mastery = snapshot(make_record("edge", due_in=timedelta(0)))
    assert [r.word for r in due_for_review(mastery, set())] == ["edge"]


def test_fallback_when_pool_exhausted() -> None:
    """Test the fallback tier after every pool word is excluded."""
    pool = make_pool(words_per_type=1)
    excluded = {entry.word for entry in pool.entries} | {"the"}
    result = select_next(pool, snapshot(), excluded, DifficultyLevel.BEGINNER)

    assert result.reason == SelectionReason.FALLBACK
    assert result.word == "a"
    assert result.alternatives == ("an",)
    assert result.quality == 60


def test_fallback_reuses_list_when_all_excluded() -> None:
    """Test that an exhausted fallback list is reused."""
    pool = make_pool(words_per_type=1)
    excluded = {entry.word for entry in pool.entries} | {"the", "a", "an"}
    result = select_next(pool, snapshot(), excluded, DifficultyLevel.BEGINNER)

    assert result.reason == SelectionReason.FALLBACK
    assert result.word == "the"


def test_no_candidates() -> None:
    """Test the error when even the fallback list is empty."""
    pool = WordPool("klingon", DifficultyLevel.BEGINNER, (), ())
    with pytest.raises(NoCandidateWordsError):
        select_next(pool, snapshot(), set(), DifficultyLevel.BEGINNER)


def test_difficulty_limits_tiers() -> None:
    """Test that harder tiers stay out of easier sessions."""
    pool = WordPool(
        "english",
        DifficultyLevel.ADVANCED,
        (
            PoolWord("easy", 1, WordType.NOUN, DifficultyLevel.BEGINNER),
            PoolWord("hard", 2, WordType.NOUN, DifficultyLevel.ADVANCED),
        ),
        ("the",),
    )
    for _ in range(10):
        result = select_next(pool, snapshot(), set(), DifficultyLevel.BEGINNER)
        assert result.word == "easy"
        assert result.alternatives == ()


def test_cooldown_duration() -> None:
    """Test the growing rest period."""
    assert cooldown_duration(1) == timedelta(hours=2)
    assert cooldown_duration(3) == timedelta(hours=2)
    assert cooldown_duration(4) == timedelta(hours=3)
    assert cooldown_duration(5) == timedelta(hours=4.5)
    assert cooldown_duration(50) == timedelta(hours=24)


def test_cooldown_hides_recent_words() -> None:
    """Test that recently practised words rest before being offered as new."""
    resting = make_record(
        "noun0", due_in=timedelta(days=1), last_reviewed_at=NOW - timedelta(minutes=30)
    )
    assert is_on_cooldown(resting, NOW)
    assert not is_on_cooldown(resting, NOW + timedelta(hours=3))

    pool = WordPool(
        "english",
        DifficultyLevel.BEGINNER,
        (PoolWord("noun0", 1, WordType.NOUN), PoolWord("noun1", 2, WordType.NOUN)),
        ("the",),
    )
    for _ in range(10):
        result = select_next(pool, snapshot(resting), set(), DifficultyLevel.BEGINNER)
        assert result.word == "noun1"


def test_cooldown_ignored_when_it_would_empty_pool() -> None:
    """Test that cooldown never pushes selection to the fallback."""
    resting = make_record(
        "noun0", due_in=timedelta(days=1), last_reviewed_at=NOW - timedelta(minutes=30)
    )
    pool = WordPool("english", DifficultyLevel.BEGINNER, (PoolWord("noun0", 1, WordType.NOUN),), ("the",))
    result = select_next(pool, snapshot(resting), set(), DifficultyLevel.BEGINNER)

    assert result.reason == SelectionReason.FREQUENCY_BASED
    assert result.word == "noun0"


def test_selection_quality_bounds() -> None:
    """Test that quality stays within 0-100."""
    pool = make_pool()
    assert selection_quality([], pool.entries) == 0
    for seed in range(10):
        picked = select_frequency_words(pool.entries, set(), 4, 2, random.Random(seed))
        assert 0 <= selection_quality(picked, pool.entries) <= 100
    assert selection_quality(pool.entries[:4], pool.entries) > selection_quality(pool.entries[-1:], pool.entries)


def test_cumulative_tiers() -> None:
    """Test the tiers included at each difficulty."""
    assert cumulative_tiers(DifficultyLevel.BEGINNER) == [DifficultyLevel.BEGINNER]
    assert cumulative_tiers(DifficultyLevel.ADVANCED) == DifficultyLevel.ordered()


def test_static_pool_provider(tmp_path) -> None:
    """Test built-in pools, ranks and the unknown language fallback."""
    provider = StaticWordPoolProvider(word_lists_dir=tmp_path)

    beginner = provider.get_pool("english", DifficultyLevel.BEGINNER)
    intermediate = provider.get_pool("english", DifficultyLevel.INTERMEDIATE)
    assert len(intermediate.entries) > len(beginner.entries)
    assert [entry.rank for entry in intermediate.entries] == list(range(1, len(intermediate.entries) + 1))
    assert {entry.tier for entry in beginner.entries} == {DifficultyLevel.BEGINNER}
    assert beginner.fallback_words

    unknown = provider.get_pool("klingon", DifficultyLevel.BEGINNER)
    assert [e.word for e in unknown.entries] == [e.word for e in beginner.entries]


def test_static_pool_provider_json_override(tmp_path) -> None:
    """Test loading word lists from a JSON file."""
    words = [fake.unique.word() for _ in range(3)]
    data = {
        "beginner": [{"word": words[0], "type": "noun"}, {"word": words[1], "type": "verb"}],
        "intermediate": [{"word": words[2]}],
    }
    (tmp_path / "esperanto.json").write_text(json.dumps(data), encoding="utf-8")

    pool = StaticWordPoolProvider(word_lists_dir=tmp_path).get_pool("esperanto", DifficultyLevel.INTERMEDIATE)

    assert [e.word for e in pool.entries] == words
    assert pool.entries[0].word_type == WordType.NOUN
    assert pool.entries[2].word_type == WordType.OTHER


if __name__ == "__main__":
    pytest.main([__file__])
