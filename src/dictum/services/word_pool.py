"""Frequency-ranked word pools per language and difficulty."""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dictum.config import settings
from dictum.models.engine_models import DifficultyLevel, PoolWord, WordPool, WordType


logger = logging.getLogger(__name__)

N, V, A, O = WordType.NOUN, WordType.VERB, WordType.ADJECTIVE, WordType.OTHER

# Ranked by frequency within each tier
WORD_LISTS: Dict[str, Dict[DifficultyLevel, List[Tuple[str, WordType]]]] = {
    "english": {
        DifficultyLevel.BEGINNER: [
            ("the", O), ("be", V), ("have", V), ("do", V), ("say", V), ("go", V),
            ("time", N), ("year", N), ("people", N), ("day", N), ("man", N), ("house", N),
            ("good", A), ("new", A), ("first", A), ("big", A), ("small", A),
            ("and", O), ("with", O), ("this", O),
        ],
        DifficultyLevel.INTERMEDIATE: [
            ("however", O), ("therefore", O), ("although", O), ("through", O), ("between", O),
            ("decide", V), ("improve", V), ("consider", V), ("remember", V),
            ("experience", N), ("opportunity", N), ("journey", N), ("knowledge", N),
            ("important", A), ("difficult", A), ("available", A), ("different", A),
        ],
        DifficultyLevel.ADVANCED: [
            ("nevertheless", O), ("consequently", O), ("furthermore", O), ("notwithstanding", O),
            ("substantiate", V), ("corroborate", V), ("exemplify", V), ("elucidate", V),
            ("ambiguity", N), ("predicament", N), ("paradigm", N),
            ("meticulous", A), ("ubiquitous", A), ("inadvertent", A),
        ],
    },
    "german": {
        DifficultyLevel.BEGINNER: [
            ("der", O), ("und", O), ("ich", O), ("sein", V), ("haben", V), ("gehen", V),
            ("machen", V), ("Zeit", N), ("Jahr", N), ("Tag", N), ("Haus", N), ("Kind", N),
            ("gut", A), ("neu", A), ("groß", A), ("klein", A),
        ],
        DifficultyLevel.INTERMEDIATE: [
            ("jedoch", O), ("während", O), ("trotzdem", O), ("entscheiden", V),
            ("verbessern", V), ("erinnern", V), ("Erfahrung", N), ("Gelegenheit", N),
            ("Reise", N), ("wichtig", A), ("schwierig", A), ("verschieden", A),
        ],
        DifficultyLevel.ADVANCED: [
            ("nichtsdestotrotz", O), ("hinsichtlich", O), ("gegebenenfalls", O),
            ("veranschaulichen", V), ("bekräftigen", V), ("Zwiespalt", N),
            ("Voraussetzung", N), ("unverzüglich", A), ("selbstverständlich", A),
        ],
    },
    "spanish": {
        DifficultyLevel.BEGINNER: [
            ("el", O), ("de", O), ("que", O), ("ser", V), ("tener", V), ("hacer", V),
            ("ir", V), ("tiempo", N), ("año", N), ("día", N), ("casa", N), ("hombre", N),
            ("bueno", A), ("nuevo", A), ("grande", A), ("pequeño", A),
        ],
        DifficultyLevel.INTERMEDIATE: [
            ("aunque", O), ("mientras", O), ("además", O), ("decidir", V), ("mejorar", V),
            ("recordar", V), ("experiencia", N), ("oportunidad", N), ("viaje", N),
            ("importante", A), ("difícil", A), ("diferente", A),
        ],
        DifficultyLevel.ADVANCED: [
            ("consecuentemente", O), ("simultáneamente", O), ("corroborar", V),
            ("ejemplificar", V), ("ambigüedad", N), ("paradigma", N),
            ("meticuloso", A), ("excepcional", A),
        ],
    },
    "french": {
        DifficultyLevel.BEGINNER: [
            ("le", O), ("de", O), ("et", O), ("être", V), ("avoir", V), ("faire", V),
            ("aller", V), ("temps", N), ("année", N), ("jour", N), ("maison", N), ("homme", N),
            ("bon", A), ("nouveau", A), ("grand", A), ("petit", A),
        ],
        DifficultyLevel.INTERMEDIATE: [
            ("cependant", O), ("pourtant", O), ("toujours", O), ("décider", V),
            ("améliorer", V), ("souvenir", V), ("expérience", N), ("occasion", N),
            ("voyage", N), ("important", A), ("difficile", A), ("différent", A),
        ],
        DifficultyLevel.ADVANCED: [
            ("néanmoins", O), ("conséquemment", O), ("corroborer", V), ("élucider", V),
            ("ambiguïté", N), ("paradigme", N), ("méticuleux", A), ("exceptionnel", A),
        ],
    },
}

FALLBACK_WORDS: Dict[str, Dict[DifficultyLevel, List[str]]] = {
    "english": {
        DifficultyLevel.BEGINNER: ["the", "a", "an", "this", "that"],
        DifficultyLevel.INTERMEDIATE: ["because", "during", "without", "within"],
        DifficultyLevel.ADVANCED: ["moreover", "whereas", "thereby"],
    },
    "german": {
        DifficultyLevel.BEGINNER: ["der", "die", "das", "ich", "und"],
        DifficultyLevel.INTERMEDIATE: ["weil", "ohne", "damit"],
        DifficultyLevel.ADVANCED: ["demzufolge", "wohingegen"],
    },
    "spanish": {
        DifficultyLevel.BEGINNER: ["el", "la", "un", "una", "y"],
        DifficultyLevel.INTERMEDIATE: ["porque", "durante", "sin"],
        DifficultyLevel.ADVANCED: ["asimismo", "mientras"],
    },
    "french": {
        DifficultyLevel.BEGINNER: ["le", "la", "un", "une", "et"],
        DifficultyLevel.INTERMEDIATE: ["parce", "pendant", "sans"],
        DifficultyLevel.ADVANCED: ["toutefois", "tandis"],
    },
}

DEFAULT_LANGUAGE = "english"


def cumulative_tiers(difficulty: DifficultyLevel) -> List[DifficultyLevel]:
    """Tiers included at a difficulty: itself and every easier one."""
    ordered = DifficultyLevel.ordered()
    return ordered[: ordered.index(difficulty) + 1]


class WordPoolProvider(ABC):
    """Supplies ranked word pools."""

    @abstractmethod
    def get_pool(self, language: str, difficulty: DifficultyLevel) -> WordPool:
        """Pool for a language, cumulative up to `difficulty`."""


class StaticWordPoolProvider(WordPoolProvider):
    """Built-in word lists, optionally overridden by JSON files.

    A file `<word_lists_dir>/<language>.json` maps tier names to lists of
    `{"word": ..., "type": ...}` objects, most frequent first.
    """

    def __init__(self, word_lists_dir: Optional[Path] = None):
        self.word_lists_dir = word_lists_dir if word_lists_dir is not None else settings.paths.word_lists_dir
        self._cache: Dict[str, Dict[DifficultyLevel, List[Tuple[str, WordType]]]] = {}

    def _load_lists(self, language: str) -> Dict[DifficultyLevel, List[Tuple[str, WordType]]]:
        if language in self._cache:
            return self._cache[language]

        lists = WORD_LISTS.get(language)
        path = Path(self.word_lists_dir) / f"{language}.json"
        if path.exists():
            with path.open(encoding="utf-8") as f:
                data = json.load(f)
            lists = {
                DifficultyLevel(tier): [
                    (entry["word"], WordType(entry.get("type", WordType.OTHER.value)))
                    for entry in entries
                ]
                for tier, entries in data.items()
            }
            logger.info(f"Loaded word lists for {language} from {path}")
        elif lists is None:
            logger.warning(f"No word lists for {language}, using {DEFAULT_LANGUAGE}")
            lists = WORD_LISTS[DEFAULT_LANGUAGE]

        self._cache[language] = lists
        return lists

    def get_pool(self, language: str, difficulty: DifficultyLevel) -> WordPool:
        lists = self._load_lists(language)
        entries: List[PoolWord] = []
        seen = set()
        for tier in cumulative_tiers(difficulty):
            for word, word_type in lists.get(tier, []):
                key = word.lower()
                if key in seen:
                    continue
                seen.add(key)
                entries.append(PoolWord(word=word, rank=len(entries) + 1, word_type=word_type, tier=tier))

        fallback = FALLBACK_WORDS.get(language, FALLBACK_WORDS[DEFAULT_LANGUAGE])[difficulty]
        logger.debug(f"Pool for {language} ({difficulty.value}): {len(entries)} words")
        return WordPool(
            language=language,
            difficulty=difficulty,
            entries=tuple(entries),
            fallback_words=tuple(fallback),
        )
