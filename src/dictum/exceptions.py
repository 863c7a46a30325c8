"""Exception hierarchy for the learning-progress engine."""
from typing import Optional


class DictumError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class InvalidReferenceError(DictumError):
    """Reference text is empty or contains no scorable tokens."""

    def __init__(self, reference: Optional[str] = None) -> None:
        self.reference = reference
        super().__init__(f"Invalid reference text: {reference!r}")


class NoCandidateWordsError(DictumError):
    """Every selection tier, fallback included, came up empty."""

    def __init__(self, language: str, difficulty: str) -> None:
        self.language = language
        self.difficulty = difficulty
        super().__init__(f"No candidate words for {language} ({difficulty})")


class RepositoryUnavailableError(DictumError):
    """A persistence call failed or timed out."""


class ConflictError(DictumError):
    """An optimistic update lost a race against a concurrent writer."""


class ExerciseNotFoundError(DictumError):
    """Bidirectional exercise does not exist."""

    def __init__(self, exercise_id: int) -> None:
        self.exercise_id = exercise_id
        super().__init__(f"Exercise {exercise_id} not found")


class SessionStateError(DictumError):
    """Operation is not allowed in the session's current state."""
