"""Tests for configuration settings."""
import os

import pytest

from dictum.config import settings


def test_base_directories_exist():
    """Test that all required directories exist."""
    from dictum.config import BASE_DIR, DATA_DIR, WORD_LISTS_DIR

    assert BASE_DIR.exists()
    assert DATA_DIR.exists()
    assert WORD_LISTS_DIR.exists()


def test_settings_defaults():
    """Test default settings values."""
    assert settings.mastery.min_level == 1
    assert settings.mastery.max_level == 10
    assert settings.mastery.promotion_accuracy == 0.8
    assert settings.mastery.demotion_accuracy == 0.6
    assert settings.scoring.dictation_threshold == 95
    assert settings.selection.max_repetitions_per_type == 2
    assert settings.session.max_exercises == 20
    assert settings.session.default_difficulty == "beginner"


def test_review_ladder_constants():
    """Test the review ladder table."""
    from dictum.config import REVIEW_INTERVAL_ON_FAILURE, REVIEW_INTERVALS, REVIEW_MASTERY_ROUND

    assert REVIEW_INTERVALS[1] == 30
    assert REVIEW_INTERVALS[6] == 30 * 24 * 3600
    assert REVIEW_INTERVAL_ON_FAILURE == 30
    assert REVIEW_MASTERY_ROUND == max(REVIEW_INTERVALS)


def test_settings_from_env():
    """Test that settings can be overridden by environment variables."""
    os.environ["SESSION_MAX_EXERCISES"] = "7"

    # Field defaults are read at import time, so build the group directly
    from dictum.config import SessionSettings

    test_settings = SessionSettings(max_exercises=int(os.environ["SESSION_MAX_EXERCISES"]))
    assert test_settings.max_exercises == 7

    # Clean up
    del os.environ["SESSION_MAX_EXERCISES"]


def test_validate_rejects_bad_values():
    """Test that invalid settings are rejected."""
    from dictum.config import ScoringSettings, SelectionSettings, Settings

    with pytest.raises(ValueError):
        Settings(scoring=ScoringSettings(dictation_threshold=120)).validate()

    with pytest.raises(ValueError):
        Settings(selection=SelectionSettings(cooldown_base_hours=30, cooldown_max_hours=24)).validate()

    Settings().validate()


if __name__ == "__main__":
    pytest.main([__file__])
