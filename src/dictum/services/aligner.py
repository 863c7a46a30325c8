"""Token-level scoring of a learner's answer against a reference text."""
import logging
import re
from typing import List, Optional, Tuple

from nltk.metrics.distance import edit_distance
from nltk.tokenize import RegexpTokenizer

from dictum.config import settings
from dictum.exceptions import InvalidReferenceError
from dictum.models.engine_models import AttemptResult, TokenStatus, TokenVerdict
from dictum import monitoring


logger = logging.getLogger(__name__)

# Words keep inner apostrophes and hyphens; everything else is a boundary
_tokenizer = RegexpTokenizer(r"\w+(?:['-]\w+)*")

_APOSTROPHES = re.compile("[‘’‚‛′‵`]")
_DASHES = re.compile("[‐‑‒–—―]")


def normalize_text(text: str) -> str:
    """Lower-case the text and fold typographic quotes and dashes."""
    if not text:
        return ""
    text = _APOSTROPHES.sub("'", text.strip().lower())
    return _DASHES.sub("-", text)


def tokenize(text: str) -> List[str]:
    """Split normalized text into word tokens."""
    return _tokenizer.tokenize(normalize_text(text))


def almost_bound(reference_token: str) -> int:
    """Largest character edit distance still counted as a typo."""
    return max(1, len(reference_token) // settings.scoring.almost_divisor)


def classify_pair(reference_token: str, user_token: str) -> TokenStatus:
    """Classify two aligned tokens that are both present."""
    if reference_token == user_token:
        return TokenStatus.CORRECT
    # Damerau distance rather than plain Levenshtein: an adjacent swap
    # ("quikc") is one edit, so it stays within the typo bound
    distance = edit_distance(reference_token, user_token, transpositions=True)
    if distance <= almost_bound(reference_token):
        return TokenStatus.ALMOST
    return TokenStatus.INCORRECT


def align_tokens(
    reference: List[str], answer: List[str]
) -> List[Tuple[Optional[str], Optional[str]]]:
    """Align two token sequences by minimum edit distance.

    Builds the Wagner-Fischer matrix over whole tokens (substitution,
    insertion and deletion all cost 1) and backtracks it into pairs. A pair
    with a missing side is a deletion (reference only) or an insertion
    (answer only). On equal cost the diagonal wins, so a misspelt word is
    paired with its reference token rather than split into missing + extra.
    """
    rows, cols = len(reference), len(answer)
    matrix = [[0] * (cols + 1) for _ in range(rows + 1)]
    for i in range(rows + 1):
        matrix[i][0] = i
    for j in range(cols + 1):
        matrix[0][j] = j

    for i in range(1, rows + 1):
        for j in range(1, cols + 1):
            cost = 0 if reference[i - 1] == answer[j - 1] else 1
            matrix[i][j] = min(
                matrix[i - 1][j - 1] + cost,
                matrix[i - 1][j] + 1,
                matrix[i][j - 1] + 1,
            )

    pairs: List[Tuple[Optional[str], Optional[str]]] = []
    i, j = rows, cols
    while i > 0 or j > 0:
        if i > 0 and j > 0:
            cost = 0 if reference[i - 1] == answer[j - 1] else 1
            if matrix[i][j] == matrix[i - 1][j - 1] + cost:
                pairs.append((reference[i - 1], answer[j - 1]))
                i -= 1
                j -= 1
                continue
        if i > 0 and matrix[i][j] == matrix[i - 1][j] + 1:
            pairs.append((reference[i - 1], None))
            i -= 1
        else:
            pairs.append((None, answer[j - 1]))
            j -= 1

    pairs.reverse()
    return pairs


def score(reference: str, answer: str) -> AttemptResult:
    """Score a user's answer against the reference text."""
    reference_tokens = tokenize(reference) if isinstance(reference, str) else []
    if not reference_tokens:
        raise InvalidReferenceError(reference)

    answer_tokens = tokenize(answer or "")

    verdicts: List[TokenVerdict] = []
    for reference_token, user_token in align_tokens(reference_tokens, answer_tokens):
        if reference_token is None:
            status = TokenStatus.EXTRA
        elif user_token is None:
            status = TokenStatus.MISSING
        else:
            status = classify_pair(reference_token, user_token)
        verdicts.append(TokenVerdict(reference_token, user_token, status))

    counts = {status: 0 for status in TokenStatus}
    for verdict in verdicts:
        counts[verdict.status] += 1

    raw = 100 * (counts[TokenStatus.CORRECT] + 0.5 * counts[TokenStatus.ALMOST]) / len(reference_tokens)
    accuracy = round(min(100.0, max(0.0, raw)), 2)

    logger.debug(
        f"Scored answer: {len(reference_tokens)} reference tokens, "
        f"{len(answer_tokens)} answer tokens, accuracy {accuracy}"
    )
    monitoring.answers_scored.inc()
    monitoring.answer_accuracy.observe(accuracy)

    return AttemptResult(verdicts=tuple(verdicts), accuracy=accuracy, counts=counts)
