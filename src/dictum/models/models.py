"""Database models for the engine."""
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from dictum.models.base import Base, TimestampMixin


class WordMastery(Base, TimestampMixin):
    """Per-user word mastery record."""

    __tablename__ = "word_mastery"
    __table_args__ = (
        UniqueConstraint("user_id", "word", "language", name="uq_word_mastery_key"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    word = Column(String, nullable=False)
    language = Column(String, nullable=False)
    mastery_level = Column(Integer, nullable=False, default=1)  # 1-10
    review_count = Column(Integer, nullable=False, default=0)
    correct_count = Column(Integer, nullable=False, default=0)
    last_reviewed_at = Column(DateTime(timezone=True), nullable=False)
    next_review_date = Column(DateTime(timezone=True), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)


class Exercise(Base, TimestampMixin):
    """Bidirectional exercise model."""

    __tablename__ = "bidirectional_exercises"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    sentence = Column(String, nullable=False)
    language = Column(String, nullable=False)
    support_language = Column(String, nullable=True)
    status = Column(String, nullable=False, default="learning")  # learning, reviewing, mastered

    # Relationships
    reviews = relationship("ReviewLog", back_populates="exercise", order_by="ReviewLog.round")
    mastered_words = relationship("MasteredWord", back_populates="exercise")


class ReviewLog(Base, TimestampMixin):
    """Append-only review event log."""

    __tablename__ = "bidirectional_reviews"
    __table_args__ = (
        UniqueConstraint("exercise_id", "direction", "round", name="uq_review_round"),
    )

    id = Column(Integer, primary_key=True)
    exercise_id = Column(Integer, ForeignKey("bidirectional_exercises.id"), nullable=False)
    direction = Column(String, nullable=False)  # forward, backward
    round = Column(Integer, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    due_at = Column(DateTime(timezone=True), nullable=True)  # Set when due in under a day
    due_on = Column(Date, nullable=True)  # Set otherwise
    completed_at = Column(DateTime(timezone=True), nullable=False)

    # Relationships
    exercise = relationship("Exercise", back_populates="reviews")


class MasteredWord(Base, TimestampMixin):
    """Word extracted from a mastered bidirectional exercise."""

    __tablename__ = "bidirectional_mastered_words"
    __table_args__ = (
        UniqueConstraint("user_id", "word", "language", name="uq_mastered_word"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    exercise_id = Column(Integer, ForeignKey("bidirectional_exercises.id"), nullable=False)
    word = Column(String, nullable=False)
    language = Column(String, nullable=False)

    # Relationships
    exercise = relationship("Exercise", back_populates="mastered_words")


class PracticeSession(Base, TimestampMixin):
    """Aggregate of a finished practice session."""

    __tablename__ = "practice_sessions"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    language = Column(String, nullable=False)
    difficulty = Column(String, nullable=False)
    total_attempts = Column(Integer, default=0)
    total_correct = Column(Integer, default=0)
    started_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=False)
