"""Configuration settings for the learning-progress engine."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
WORD_LISTS_DIR = DATA_DIR / "word_lists"

# Review ladder: round -> seconds until the next review
REVIEW_INTERVALS = {
    1: 30,
    2: 24 * 3600,
    3: 3 * 24 * 3600,
    4: 7 * 24 * 3600,
    5: 14 * 24 * 3600,
    6: 30 * 24 * 3600,
}
REVIEW_INTERVAL_AFTER_LADDER = 365 * 24 * 3600
REVIEW_INTERVAL_ON_FAILURE = 30
REVIEW_MASTERY_ROUND = 6


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        WORD_LISTS_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    word_lists_dir: Path = WORD_LISTS_DIR


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///dictum.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = os.getenv("LOG_FILE", None)


@dataclass
class ScoringSettings:
    """Answer scoring settings."""
    dictation_threshold: float = float(os.getenv("DICTATION_CORRECT_THRESHOLD", "95"))
    almost_divisor: int = int(os.getenv("ALMOST_DIVISOR", "4"))


@dataclass
class MasterySettings:
    """Word mastery settings."""
    min_level: int = 1
    max_level: int = int(os.getenv("MAX_MASTERY_LEVEL", "10"))
    promotion_accuracy: float = float(os.getenv("MASTERY_PROMOTION_ACCURACY", "0.8"))
    demotion_accuracy: float = float(os.getenv("MASTERY_DEMOTION_ACCURACY", "0.6"))
    mastered_level: int = int(os.getenv("MASTERED_LEVEL", "4"))
    struggling_min_reviews: int = 3


@dataclass
class SelectionSettings:
    """Next-word selection settings."""
    max_repetitions_per_type: int = int(os.getenv("MAX_REPETITIONS_PER_TYPE", "2"))
    alternatives: int = int(os.getenv("SELECTION_ALTERNATIVES", "3"))
    review_quality: int = 90
    fallback_quality: int = 60
    cooldown_base_hours: float = float(os.getenv("COOLDOWN_BASE_HOURS", "2"))
    cooldown_max_hours: float = float(os.getenv("COOLDOWN_MAX_HOURS", "24"))
    cooldown_usage_threshold: int = 3
    cooldown_multiplier: float = 1.5


@dataclass
class SessionSettings:
    """Practice session settings."""
    max_exercises: int = int(os.getenv("SESSION_MAX_EXERCISES", "20"))
    default_language: str = os.getenv("DEFAULT_LANGUAGE", "english")
    default_difficulty: str = os.getenv("DEFAULT_DIFFICULTY", "beginner")
    min_attempts_for_adaptation: int = int(os.getenv("MIN_ATTEMPTS_FOR_ADAPTATION", "5"))
    step_up_accuracy: float = 0.8
    step_down_accuracy: float = 0.6


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_scoring_settings() -> ScoringSettings:
    """Get scoring settings."""
    return ScoringSettings()


def get_mastery_settings() -> MasterySettings:
    """Get mastery settings."""
    return MasterySettings()


def get_selection_settings() -> SelectionSettings:
    """Get selection settings."""
    return SelectionSettings()


def get_session_settings() -> SessionSettings:
    """Get session settings."""
    return SessionSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    scoring: ScoringSettings = field(default_factory=get_scoring_settings)
    mastery: MasterySettings = field(default_factory=get_mastery_settings)
    selection: SelectionSettings = field(default_factory=get_selection_settings)
    session: SessionSettings = field(default_factory=get_session_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.scoring.dictation_threshold < 0 or self.scoring.dictation_threshold > 100:
            raise ValueError("DICTATION_CORRECT_THRESHOLD must be between 0 and 100")

        if self.scoring.almost_divisor < 1:
            raise ValueError("ALMOST_DIVISOR must be positive")

        if self.mastery.max_level < self.mastery.min_level:
            raise ValueError("MAX_MASTERY_LEVEL cannot be lower than the minimum level")

        if not 0 <= self.mastery.demotion_accuracy <= self.mastery.promotion_accuracy <= 1:
            raise ValueError("Mastery accuracies must satisfy 0 <= demotion <= promotion <= 1")

        if self.selection.max_repetitions_per_type < 1:
            raise ValueError("MAX_REPETITIONS_PER_TYPE must be positive")

        if self.selection.cooldown_base_hours > self.selection.cooldown_max_hours:
            raise ValueError("COOLDOWN_BASE_HOURS cannot be greater than COOLDOWN_MAX_HOURS")

        if self.session.max_exercises < 1:
            raise ValueError("SESSION_MAX_EXERCISES must be positive")


# Create global settings instance
settings = Settings()
settings.validate()
