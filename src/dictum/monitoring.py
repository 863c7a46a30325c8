"""Monitoring configuration for the engine."""
from prometheus_client import Counter, Gauge, Histogram, start_http_server

# Scoring metrics
answers_scored = Counter(
    "dictum_answers_scored_total",
    "Total number of answers scored by the aligner",
)

answer_accuracy = Histogram(
    "dictum_answer_accuracy_percent",
    "Accuracy of scored answers in percent",
    buckets=[10, 25, 50, 75, 90, 95, 100],
)

# Progress metrics
mastery_updates = Counter(
    "dictum_mastery_updates_total",
    "Total number of word mastery records written",
    ["outcome"],
)

review_events = Counter(
    "dictum_review_events_total",
    "Total number of bidirectional review events recorded",
    ["direction", "outcome"],
)

exercises_mastered = Counter(
    "dictum_exercises_mastered_total",
    "Total number of bidirectional exercises promoted to mastered",
)

# Selection metrics
word_selections = Counter(
    "dictum_word_selections_total",
    "Total number of next-word selections",
    ["reason"],
)

# Session metrics
active_sessions = Gauge(
    "dictum_active_sessions",
    "Number of practice sessions currently in progress",
)

practice_sessions = Counter(
    "dictum_practice_sessions_total",
    "Total number of practice sessions started",
)

# Error metrics
repository_errors = Counter(
    "dictum_repository_errors_total",
    "Total number of failed repository operations",
    ["error_type"],
)

pending_writes = Counter(
    "dictum_pending_writes_total",
    "Mastery writes kept in memory after the retry budget was exhausted",
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
