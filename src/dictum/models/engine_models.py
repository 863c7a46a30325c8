"""Value types passed between the engine components."""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple, Union


class TokenStatus(Enum):
    """Verdict for one aligned token pair."""
    CORRECT = "correct"
    ALMOST = "almost"  # Minor typo
    INCORRECT = "incorrect"
    MISSING = "missing"  # Reference token without a user token
    EXTRA = "extra"  # User token without a reference token


class Direction(Enum):
    """Review direction of a bidirectional exercise."""
    FORWARD = "forward"  # Target language -> support language
    BACKWARD = "backward"  # Support language -> target language


class ExerciseStatus(Enum):
    """Lifecycle of a bidirectional exercise."""
    LEARNING = "learning"
    REVIEWING = "reviewing"
    MASTERED = "mastered"


class DifficultyLevel(Enum):
    """Word pool difficulty tiers, cumulative from beginner upwards."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @classmethod
    def ordered(cls) -> List["DifficultyLevel"]:
        return [cls.BEGINNER, cls.INTERMEDIATE, cls.ADVANCED]


class WordType(Enum):
    """Lexical category used for selection diversity."""
    NOUN = "noun"
    VERB = "verb"
    ADJECTIVE = "adjective"
    OTHER = "other"


class SelectionReason(Enum):
    """Which selection tier produced a word."""
    REVIEW = "review"
    FREQUENCY_BASED = "frequency_based"
    FALLBACK = "fallback"


class ExerciseMode(Enum):
    """How an answer is judged correct for progress purposes."""
    CLOZE = "cloze"  # Single blanked word must match
    DICTATION = "dictation"  # Full sentence, accuracy threshold


@dataclass(frozen=True)
class TokenVerdict:
    """One aligned token pair and its classification."""
    reference_token: Optional[str]
    user_token: Optional[str]
    status: TokenStatus


@dataclass(frozen=True)
class AttemptResult:
    """Outcome of scoring one submission against its reference text."""
    verdicts: Tuple[TokenVerdict, ...]
    accuracy: float
    counts: Dict[TokenStatus, int]

    @property
    def reference_token_count(self) -> int:
        return sum(1 for verdict in self.verdicts if verdict.reference_token is not None)

    def count(self, status: TokenStatus) -> int:
        return self.counts.get(status, 0)


@dataclass(frozen=True)
class WordMasteryRecord:
    """Lifetime repetition history of one word for one user and language."""
    user_id: int
    word: str
    language: str
    mastery_level: int
    review_count: int
    correct_count: int
    last_reviewed_at: datetime
    next_review_date: datetime
    version: int = 0  # 0 means never persisted

    @property
    def accuracy(self) -> float:
        if not self.review_count:
            return 0.0
        return self.correct_count / self.review_count


# Sub-day due values keep the full timestamp, longer ones keep the calendar date
DueDate = Union[datetime, date]


@dataclass(frozen=True)
class ReviewEvent:
    """Append-only log entry for one review attempt."""
    exercise_id: int
    direction: Direction
    round: int
    is_correct: bool
    due_date: DueDate
    completed_at: datetime


@dataclass
class BidirectionalExercise:
    """Sentence reviewed in both directions until mastered."""
    id: int
    user_id: int
    sentence: str
    language: str
    status: ExerciseStatus = ExerciseStatus.LEARNING
    support_language: Optional[str] = None


@dataclass(frozen=True)
class PoolWord:
    """Entry of a frequency-ranked word list."""
    word: str
    rank: int
    word_type: WordType = WordType.OTHER
    tier: DifficultyLevel = DifficultyLevel.BEGINNER


@dataclass(frozen=True)
class WordPool:
    """Ranked candidates for one language and difficulty, plus a fallback list."""
    language: str
    difficulty: DifficultyLevel
    entries: Tuple[PoolWord, ...]
    fallback_words: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MasterySnapshot:
    """Mastery records of one user and language as of `now`."""
    records: Tuple[WordMasteryRecord, ...]
    now: datetime


@dataclass(frozen=True)
class SelectionResult:
    """Next target word with the tier that produced it."""
    word: str
    reason: SelectionReason
    alternatives: Tuple[str, ...]
    quality: int


@dataclass
class WordUsage:
    """Per-word counters kept for the current session."""
    attempts: int = 0
    correct: int = 0
    last_used: Optional[datetime] = None


@dataclass(frozen=True)
class PendingAttempt:
    """Mastery update that could not be persisted yet."""
    word: str
    is_correct: bool
    attempted_at: datetime


@dataclass
class SessionState:
    """Transient state of one practice session."""
    difficulty: DifficultyLevel
    started_at: Optional[datetime] = None
    excluded_words: Set[str] = field(default_factory=set)
    total_attempts: int = 0
    total_correct: int = 0
    word_usage: Dict[str, WordUsage] = field(default_factory=dict)
    pending_writes: List[PendingAttempt] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        if not self.total_attempts:
            return 0.0
        return self.total_correct / self.total_attempts


@dataclass(frozen=True)
class PracticeSummary:
    """Aggregate of a finished session."""
    user_id: int
    language: str
    difficulty: DifficultyLevel
    total_attempts: int
    total_correct: int
    started_at: Optional[datetime]
    ended_at: datetime
